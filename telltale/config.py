"""Configuration loading for the Telltale capture service.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Clamp out-of-range values instead of rejecting them, so telemetry
  stays available under a sloppy configuration
- Convert alert rule settings into core domain rules
"""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from telltale.core.alerting import default_alert_rules
from telltale.core.models import (
    AlertChannel,
    AlertCondition,
    AlertRule,
    ConditionType,
    EventFilter,
    Level,
)


def _clamp_rate(v: float) -> float:
    return min(max(v, 0.0), 1.0)


class SamplingSettings(BaseModel):
    error_sample_rate: float = Field(default=1.0, description="Fraction of errors kept")
    transaction_sample_rate: float = Field(default=0.1)
    profiles_sample_rate: float = Field(default=0.1)
    session_replay: bool = Field(default=False)
    performance_monitoring: bool = Field(
        default=True,
        description="Install the long-task/resource-failure monitor",
    )

    @field_validator(
        "error_sample_rate", "transaction_sample_rate", "profiles_sample_rate"
    )
    @classmethod
    def clamp_rate(cls, v: float) -> float:
        """Clamp sample rates into [0, 1]."""
        return _clamp_rate(v)


class FilteringSettings(BaseModel):
    ignore_errors: list[str] = Field(
        default_factory=lambda: [
            "Network Error",
            "Script error",
            "ResizeObserver loop limit exceeded",
            "ChunkLoadError",
        ]
    )
    # Matched against the event filename, which falls back to the innermost
    # traceback file, so entries here also drop errors raised from matching
    # package paths
    ignore_urls: list[str] = Field(default_factory=list)
    allow_urls: list[str] = Field(default_factory=list)


class EventFilterSettings(BaseModel):
    environment: list[str] = Field(default_factory=list)
    release: list[str] = Field(default_factory=list)
    user: list[str] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    message: str | None = None

    def to_filter(self) -> EventFilter:
        return EventFilter(
            environment=tuple(self.environment),
            release=tuple(self.release),
            user=tuple(self.user),
            tags=dict(self.tags),
            message=self.message,
        )


class AlertConditionSettings(BaseModel):
    type: ConditionType
    threshold: int = 1
    time_window: int = Field(default=0, description="Window in minutes")
    filter: EventFilterSettings | None = None

    @field_validator("threshold", "time_window")
    @classmethod
    def clamp_non_negative(cls, v: int) -> int:
        return max(v, 0)


class AlertRuleSettings(BaseModel):
    """Alert rule as it appears in configuration."""

    id: str
    name: str
    condition: AlertConditionSettings
    severity: Level = Level.WARNING
    channels: list[AlertChannel] = Field(default_factory=list)
    enabled: bool = True

    def to_rule(self) -> AlertRule:
        condition = self.condition
        return AlertRule(
            id=self.id,
            name=self.name,
            condition=AlertCondition(
                type=condition.type,
                threshold=condition.threshold,
                time_window=condition.time_window,
                filter=condition.filter.to_filter() if condition.filter else None,
            ),
            severity=self.severity,
            channels=tuple(dict.fromkeys(self.channels)),
            enabled=self.enabled,
        )

    @classmethod
    def from_rule(cls, rule: AlertRule) -> "AlertRuleSettings":
        condition = rule.condition
        rule_filter = None
        if condition.filter is not None:
            rule_filter = EventFilterSettings(
                environment=list(condition.filter.environment),
                release=list(condition.filter.release),
                user=list(condition.filter.user),
                tags=dict(condition.filter.tags),
                message=condition.filter.message,
            )
        return cls(
            id=rule.id,
            name=rule.name,
            condition=AlertConditionSettings(
                type=condition.type,
                threshold=condition.threshold,
                time_window=condition.time_window,
                filter=rule_filter,
            ),
            severity=rule.severity,
            channels=list(rule.channels),
            enabled=rule.enabled,
        )


class EscalationLevelSettings(BaseModel):
    level: int
    channels: list[AlertChannel] = Field(default_factory=list)
    delay: int = Field(default=0, description="Delay in minutes")


class EscalationSettings(BaseModel):
    """Multi-level escalation policy.

    Declared for downstream schedulers; the tracker itself dispatches
    immediately to each rule's own channels.
    """

    levels: list[EscalationLevelSettings] = Field(
        default_factory=lambda: [
            EscalationLevelSettings(level=1, channels=[AlertChannel.EMAIL], delay=0),
            EscalationLevelSettings(level=2, channels=[AlertChannel.SLACK], delay=15),
        ]
    )
    timeout: int = Field(default=30, description="Minutes between escalations")
    max_escalations: int = Field(default=2)


class ThrottlingSettings(BaseModel):
    enabled: bool = True
    cooldown: float = Field(default=300, description="Per-rule cooldown in seconds")
    max_alerts: int = Field(
        default=10, description="Alerts allowed per time window (0 = unlimited)"
    )
    time_window: float = Field(default=3600, description="Window in seconds")

    @field_validator("cooldown", "time_window")
    @classmethod
    def clamp_duration(cls, v: float) -> float:
        """Negative durations mean no cooldown."""
        return max(v, 0.0)

    @field_validator("max_alerts")
    @classmethod
    def clamp_max_alerts(cls, v: int) -> int:
        return max(v, 0)


class AlertingSettings(BaseModel):
    enabled: bool = True
    channels: list[AlertChannel] = Field(default_factory=lambda: [AlertChannel.EMAIL])
    rules: list[AlertRuleSettings] = Field(
        default_factory=lambda: [
            AlertRuleSettings.from_rule(rule) for rule in default_alert_rules()
        ]
    )
    escalation: EscalationSettings = Field(default_factory=EscalationSettings)
    throttling: ThrottlingSettings = Field(default_factory=ThrottlingSettings)


class GitHubIntegration(BaseModel):
    enabled: bool = False
    repository: str = Field(default="", description="owner/repo")
    token: SecretStr = SecretStr("")
    auto_create_issues: bool = False
    labels: list[str] = Field(default_factory=list)
    api_base_url: str = "https://api.github.com"


class JiraCredentials(BaseModel):
    type: Literal["basic", "oauth", "token"] = "basic"
    username: str | None = None
    password: SecretStr | None = None
    token: SecretStr | None = None


class JiraIntegration(BaseModel):
    enabled: bool = False
    server: str = ""
    project: str = ""
    credentials: JiraCredentials = Field(default_factory=JiraCredentials)
    issue_type: str = "Bug"


class SlackIntegration(BaseModel):
    enabled: bool = False
    webhook: SecretStr = SecretStr("")
    channel: str = ""
    username: str = "ErrorBot"
    icon: str = "🚨"


class WebhookIntegration(BaseModel):
    enabled: bool = False
    url: str = ""
    method: Literal["GET", "POST", "PUT", "PATCH"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)


class EmailIntegration(BaseModel):
    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    sender: str = ""
    password: SecretStr = SecretStr("")
    recipients: list[str] = Field(default_factory=list)
    use_tls: bool = True


class IntegrationSettings(BaseModel):
    github: GitHubIntegration = Field(default_factory=GitHubIntegration)
    jira: JiraIntegration = Field(default_factory=JiraIntegration)
    slack: SlackIntegration = Field(default_factory=SlackIntegration)
    webhook: WebhookIntegration = Field(default_factory=WebhookIntegration)
    email: EmailIntegration = Field(default_factory=EmailIntegration)


class TrackerSettings(BaseSettings):
    """Tracker configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support. Nested sections use ``__`` as delimiter, e.g.
    ``TELLTALE_SAMPLING__ERROR_SAMPLE_RATE=0.5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TELLTALE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    provider: Literal["sentry", "bugsnag", "rollbar", "custom"] = Field(
        default="custom",
        description="Informational: which backend the collector speaks for",
    )
    dsn: str = Field(
        default="",
        description="Remote collector base URL; empty disables event delivery",
    )
    collector_path: str = Field(
        default="/api/errors",
        description="Path the event payload is POSTed to",
    )
    environment: str = Field(default="development")
    release: str = Field(default="1.0.0")

    instrument: bool = Field(
        default=True,
        description="Install runtime hooks on initialize()",
    )
    breadcrumb_capacity: int = Field(default=100)
    max_events: int = Field(default=1000)
    delivery_timeout_seconds: float = Field(default=10.0)
    user_storage_path: str = Field(
        default="",
        description="JSON file read for the current user; empty uses env vars",
    )

    sampling: SamplingSettings = Field(default_factory=SamplingSettings)
    filtering: FilteringSettings = Field(default_factory=FilteringSettings)
    alerting: AlertingSettings = Field(default_factory=AlertingSettings)
    integration: IntegrationSettings = Field(default_factory=IntegrationSettings)

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("breadcrumb_capacity", "max_events")
    @classmethod
    def clamp_capacity(cls, v: int) -> int:
        """Capacities below one fall back to one."""
        return max(v, 1)

    @field_validator("delivery_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Non-positive timeouts fall back to the default."""
        return v if v > 0 else 10.0


def load_settings(env_file: str | None = None, **overrides: object) -> TrackerSettings:
    """Load tracker settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.
        **overrides: Explicit values taking precedence over the
                 environment.

    Returns:
        Validated TrackerSettings instance.

    Raises:
        ValidationError: If a value has the wrong type entirely.
    """
    if env_file:
        return TrackerSettings(_env_file=env_file, **overrides)  # type: ignore[call-arg]
    return TrackerSettings(**overrides)  # type: ignore[arg-type]


__all__ = [
    "AlertRuleSettings",
    "AlertingSettings",
    "EscalationSettings",
    "FilteringSettings",
    "IntegrationSettings",
    "SamplingSettings",
    "ThrottlingSettings",
    "TrackerSettings",
    "load_settings",
]
