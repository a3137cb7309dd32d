"""Domain models for the Telltale capture service.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeAlias, Union

JSONValue: TypeAlias = Union[
    str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]
]


def _freeze(obj: Any, name: str) -> None:
    """Replace a dict attribute on a frozen dataclass with a read-only proxy."""
    value = getattr(obj, name)
    if isinstance(value, dict):
        object.__setattr__(obj, name, MappingProxyType(value))


class Level(Enum):
    """Event and alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    FATAL = "fatal"


class MechanismType(Enum):
    """How an event entered the tracker."""

    ONERROR = "onerror"
    ONUNHANDLEDREJECTION = "onunhandledrejection"
    MANUAL = "manual"


class BreadcrumbType(Enum):
    NAVIGATION = "navigation"
    USER = "user"
    DEBUG = "debug"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class StackFrame:
    """A single frame in a stack trace."""

    filename: str
    function: str
    lineno: int
    colno: int
    abs_path: str
    in_app: bool
    context_line: str = ""


@dataclass(frozen=True)
class Mechanism:
    type: MechanismType
    handled: bool


@dataclass(frozen=True)
class ExceptionDetails:
    """Structured exception detail attached to every event."""

    type: str  # e.g. "ValueError", or "Message" for captured messages
    value: str
    stacktrace: tuple[StackFrame, ...]
    mechanism: Mechanism


@dataclass(frozen=True)
class UserContext:
    """Snapshot of the current user.

    Events hold their own copy, so later changes to the live
    context never rewrite history.
    """

    id: str
    user_agent: str
    username: str | None = None
    email: str | None = None
    ip_address: str = "unknown"


@dataclass(frozen=True)
class RequestContext:
    """Ambient request/browsing context at capture time."""

    url: str = ""
    method: str = "GET"
    query_string: str = ""
    data: Mapping[str, JSONValue] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Convert mapping fields to read-only proxies."""
        for name in ("data", "headers", "env"):
            _freeze(self, name)


@dataclass(frozen=True)
class Breadcrumb:
    """A timestamped record of a minor event preceding an error."""

    timestamp: datetime
    type: BreadcrumbType
    category: str
    message: str
    level: Level = Level.INFO
    data: Mapping[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze(self, "data")


@dataclass(frozen=True)
class ErrorEvent:
    """One captured incident.

    The canonical format handed to sampling, alerting and delivery.
    """

    id: str
    timestamp: datetime
    level: Level
    message: str
    exception: ExceptionDetails
    user: UserContext
    request: RequestContext
    breadcrumbs: tuple[Breadcrumb, ...]  # snapshot at capture time
    tags: Mapping[str, str]
    extra: Mapping[str, JSONValue]
    fingerprint: tuple[str, ...]
    grouping_hash: str

    def __post_init__(self) -> None:
        """Convert tags and extra dicts to read-only proxies."""
        _freeze(self, "tags")
        _freeze(self, "extra")

    @property
    def filename(self) -> str | None:
        """Source file associated with the event, if one is known."""
        filename = self.extra.get("filename")
        if isinstance(filename, str) and filename:
            return filename
        if self.exception.stacktrace:
            return self.exception.stacktrace[-1].filename
        return None


class AlertChannel(Enum):
    """Delivery targets an alert rule can route to."""

    EMAIL = "email"
    SLACK = "slack"
    WEBHOOK = "webhook"
    GITHUB = "github"


class ConditionType(Enum):
    FREQUENCY = "frequency"
    NEW_ISSUE = "new_issue"
    USER_IMPACT = "user_impact"
    CUSTOM = "custom"


@dataclass(frozen=True)
class EventFilter:
    """Selects events by environment, release, user, tags or message.

    Every populated criterion must match; an empty filter matches all.
    """

    environment: tuple[str, ...] = ()
    release: tuple[str, ...] = ()
    user: tuple[str, ...] = ()
    tags: Mapping[str, str] = field(default_factory=dict)
    message: str | None = None

    def __post_init__(self) -> None:
        _freeze(self, "tags")

    def matches(self, event: ErrorEvent) -> bool:
        if self.environment and event.tags.get("environment", "") not in self.environment:
            return False
        if self.release and event.tags.get("release", "") not in self.release:
            return False
        if self.user and event.user.id not in self.user:
            return False
        for key, value in self.tags.items():
            if event.tags.get(key) != value:
                return False
        if self.message and self.message.lower() not in event.message.lower():
            return False
        return True


@dataclass(frozen=True)
class AlertCondition:
    type: ConditionType
    threshold: int = 1
    time_window: int = 0  # minutes
    filter: EventFilter | None = None


@dataclass(frozen=True)
class AlertRule:
    """Declarative condition and response for turning events into alerts."""

    id: str
    name: str
    condition: AlertCondition
    severity: Level = Level.WARNING
    channels: tuple[AlertChannel, ...] = ()
    enabled: bool = True


@dataclass(frozen=True)
class Alert:
    """The bundle delivered to alert channels when a rule fires."""

    rule: AlertRule
    event: ErrorEvent
    timestamp: datetime
    environment: str


@dataclass(frozen=True)
class ErrorStats:
    """Aggregate statistics over the event buffer."""

    total: int
    by_level: Mapping[str, int]
    by_type: Mapping[str, int]
    recent_trend: tuple[int, ...]  # 24 hourly buckets, oldest first

    def __post_init__(self) -> None:
        """Convert mutable dicts to immutable proxies."""
        object.__setattr__(self, "by_level", MappingProxyType(dict(self.by_level)))
        object.__setattr__(self, "by_type", MappingProxyType(dict(self.by_type)))
