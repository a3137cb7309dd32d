"""JSON wire format for events, breadcrumbs and stats.

Keys are camelCase so collectors built for browser clients accept
the payloads unchanged.
"""

from collections.abc import Mapping
from typing import Any

from .models import (
    Alert,
    AlertRule,
    Breadcrumb,
    ErrorEvent,
    ErrorStats,
    RequestContext,
    StackFrame,
    UserContext,
)


def _plain(value: Any) -> Any:
    """Recursively turn read-only mappings and tuples into JSON-ready values."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def frame_to_dict(frame: StackFrame) -> dict[str, Any]:
    return {
        "filename": frame.filename,
        "function": frame.function,
        "lineno": frame.lineno,
        "colno": frame.colno,
        "absPath": frame.abs_path,
        "contextLine": frame.context_line,
        "inApp": frame.in_app,
    }


def user_to_dict(user: UserContext | None) -> dict[str, Any] | None:
    if user is None:
        return None
    data: dict[str, Any] = {"id": user.id}
    if user.username is not None:
        data["username"] = user.username
    if user.email is not None:
        data["email"] = user.email
    data["ipAddress"] = user.ip_address
    data["userAgent"] = user.user_agent
    return data


def request_to_dict(request: RequestContext) -> dict[str, Any]:
    return {
        "url": request.url,
        "method": request.method,
        "queryString": request.query_string,
        "data": _plain(request.data),
        "headers": _plain(request.headers),
        "env": _plain(request.env),
    }


def breadcrumb_to_dict(breadcrumb: Breadcrumb) -> dict[str, Any]:
    return {
        "timestamp": breadcrumb.timestamp.isoformat(),
        "type": breadcrumb.type.value,
        "category": breadcrumb.category,
        "message": breadcrumb.message,
        "level": breadcrumb.level.value,
        "data": _plain(breadcrumb.data),
    }


def event_to_dict(event: ErrorEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "timestamp": event.timestamp.isoformat(),
        "level": event.level.value,
        "message": event.message,
        "exception": {
            "type": event.exception.type,
            "value": event.exception.value,
            "stacktrace": [frame_to_dict(f) for f in event.exception.stacktrace],
            "mechanism": {
                "type": event.exception.mechanism.type.value,
                "handled": event.exception.mechanism.handled,
            },
        },
        "user": user_to_dict(event.user),
        "request": request_to_dict(event.request),
        "breadcrumbs": [breadcrumb_to_dict(b) for b in event.breadcrumbs],
        "tags": _plain(event.tags),
        "extra": _plain(event.extra),
        "fingerprint": list(event.fingerprint),
        "groupingHash": event.grouping_hash,
    }


def rule_to_dict(rule: AlertRule) -> dict[str, Any]:
    condition: dict[str, Any] = {
        "type": rule.condition.type.value,
        "threshold": rule.condition.threshold,
        "timeWindow": rule.condition.time_window,
    }
    if rule.condition.filter is not None:
        f = rule.condition.filter
        condition["filter"] = {
            "environment": list(f.environment),
            "release": list(f.release),
            "user": list(f.user),
            "tags": _plain(f.tags),
            "message": f.message,
        }
    return {
        "id": rule.id,
        "name": rule.name,
        "condition": condition,
        "severity": rule.severity.value,
        "channels": [c.value for c in rule.channels],
        "enabled": rule.enabled,
    }


def alert_to_dict(alert: Alert) -> dict[str, Any]:
    return {
        "rule": rule_to_dict(alert.rule),
        "event": event_to_dict(alert.event),
        "timestamp": alert.timestamp.isoformat(),
        "environment": alert.environment,
    }


def stats_to_dict(stats: ErrorStats) -> dict[str, Any]:
    return {
        "total": stats.total,
        "byLevel": dict(stats.by_level),
        "byType": dict(stats.by_type),
        "recentTrend": list(stats.recent_trend),
    }
