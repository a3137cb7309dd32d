"""Alert rule evaluation and throttling.

This module implements the business rules that decide which alert
rules fire for an incoming event, and whether a fired rule may notify
again yet.
"""

from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from .models import (
    AlertChannel,
    AlertCondition,
    AlertRule,
    ConditionType,
    ErrorEvent,
    EventFilter,
    Level,
)


def default_alert_rules() -> list[AlertRule]:
    """Rules every tracker starts with unless configured otherwise."""
    return [
        AlertRule(
            id="high_error_rate",
            name="High Error Rate",
            condition=AlertCondition(
                type=ConditionType.FREQUENCY, threshold=10, time_window=5
            ),
            severity=Level.CRITICAL,
            channels=(AlertChannel.EMAIL, AlertChannel.SLACK),
        ),
        AlertRule(
            id="new_error",
            name="New Error Type",
            condition=AlertCondition(type=ConditionType.NEW_ISSUE),
            severity=Level.WARNING,
            channels=(AlertChannel.EMAIL,),
        ),
        AlertRule(
            id="critical_error",
            name="Critical Error",
            condition=AlertCondition(
                type=ConditionType.CUSTOM,
                filter=EventFilter(message="critical"),
            ),
            severity=Level.CRITICAL,
            channels=(AlertChannel.EMAIL, AlertChannel.SLACK),
        ),
    ]


class AlertRuleEngine:
    """Decides which rules an event triggers.

    Pure decision logic, no side effects. Must run before the
    tracker records the event's grouping hash, so that ``last_seen``
    reflects only prior occurrences.
    """

    def evaluate(
        self,
        rules: Sequence[AlertRule],
        event: ErrorEvent,
        recent_events: Iterable[ErrorEvent],
        last_seen: Mapping[str, datetime],
        now: datetime,
    ) -> list[AlertRule]:
        """Return every enabled rule whose condition holds, in rule order."""
        events = list(recent_events)
        return [
            rule
            for rule in rules
            if rule.enabled
            and self.condition_holds(rule.condition, event, events, last_seen, now)
        ]

    def condition_holds(
        self,
        condition: AlertCondition,
        event: ErrorEvent,
        recent_events: Sequence[ErrorEvent],
        last_seen: Mapping[str, datetime],
        now: datetime,
    ) -> bool:
        if condition.type == ConditionType.FREQUENCY:
            in_window = self._within_window(recent_events, condition.time_window, now)
            return len(in_window) >= condition.threshold

        if condition.type == ConditionType.NEW_ISSUE:
            return event.grouping_hash not in last_seen

        if condition.type == ConditionType.USER_IMPACT:
            in_window = self._within_window(recent_events, condition.time_window, now)
            return len({e.user.id for e in in_window}) >= condition.threshold

        if condition.type == ConditionType.CUSTOM:
            if condition.filter is None:
                return True
            return condition.filter.matches(event)

        return False

    @staticmethod
    def _within_window(
        events: Sequence[ErrorEvent], window_minutes: int, now: datetime
    ) -> list[ErrorEvent]:
        window = timedelta(minutes=window_minutes)
        return [e for e in events if now - e.timestamp < window]


class AlertThrottle:
    """Per-rule cooldown plus a global cap on alerts per time window.

    Rule timestamps are keyed by rule id and kept apart from the
    per-grouping-hash occurrence state.
    """

    def __init__(
        self,
        enabled: bool = True,
        cooldown_seconds: float = 300,
        max_alerts: int = 10,
        time_window_seconds: float = 3600,
    ):
        self._last_alerted: dict[str, datetime] = {}
        self._sent: deque[datetime] = deque()
        self.configure(enabled, cooldown_seconds, max_alerts, time_window_seconds)

    def configure(
        self,
        enabled: bool,
        cooldown_seconds: float,
        max_alerts: int,
        time_window_seconds: float,
    ) -> None:
        """Change the limits without forgetting past alerts."""
        self.enabled = enabled
        self.cooldown = timedelta(seconds=max(cooldown_seconds, 0))
        self.max_alerts = max(max_alerts, 0)
        self.time_window = timedelta(seconds=max(time_window_seconds, 0))

    def allow(self, rule_id: str, now: datetime) -> bool:
        """Admit or suppress an alert for rule_id, recording admissions."""
        if not self.enabled:
            return True

        last = self._last_alerted.get(rule_id)
        if last is not None and now - last < self.cooldown:
            return False

        while self._sent and now - self._sent[0] >= self.time_window:
            self._sent.popleft()
        if self.max_alerts > 0 and len(self._sent) >= self.max_alerts:
            return False

        self._last_alerted[rule_id] = now
        self._sent.append(now)
        return True

    def last_alerted(self, rule_id: str) -> datetime | None:
        return self._last_alerted.get(rule_id)

    def reset(self) -> None:
        self._last_alerted.clear()
        self._sent.clear()
