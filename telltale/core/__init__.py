"""Core domain logic for the Telltale capture service.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .models import (
    Alert,
    AlertChannel,
    AlertCondition,
    AlertRule,
    Breadcrumb,
    BreadcrumbType,
    ConditionType,
    ErrorEvent,
    ErrorStats,
    EventFilter,
    ExceptionDetails,
    Level,
    Mechanism,
    MechanismType,
    RequestContext,
    StackFrame,
    UserContext,
)

__all__ = [
    "Alert",
    "AlertChannel",
    "AlertCondition",
    "AlertRule",
    "Breadcrumb",
    "BreadcrumbType",
    "ConditionType",
    "ErrorEvent",
    "ErrorStats",
    "EventFilter",
    "ExceptionDetails",
    "Level",
    "Mechanism",
    "MechanismType",
    "RequestContext",
    "StackFrame",
    "UserContext",
]
