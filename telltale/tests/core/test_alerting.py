"""Unit tests for AlertRuleEngine and AlertThrottle."""

from datetime import datetime, timedelta, timezone

import pytest

from telltale.core.alerting import AlertRuleEngine, AlertThrottle, default_alert_rules
from telltale.core.models import (
    AlertCondition,
    AlertRule,
    ConditionType,
    EventFilter,
)

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _rule(condition: AlertCondition, rule_id: str = "rule", enabled: bool = True) -> AlertRule:
    return AlertRule(id=rule_id, name=rule_id, condition=condition, enabled=enabled)


class TestDefaultRules:
    def test_three_defaults(self):
        rules = {r.id: r for r in default_alert_rules()}
        assert set(rules) == {"high_error_rate", "new_error", "critical_error"}
        assert rules["high_error_rate"].condition.threshold == 10
        assert rules["high_error_rate"].condition.time_window == 5
        assert rules["critical_error"].condition.filter == EventFilter(message="critical")


class TestFrequencyCondition:
    def test_triggers_on_third_event_in_window(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(AlertCondition(type=ConditionType.FREQUENCY, threshold=3, time_window=5))
        events = []

        fired = []
        for i in range(3):
            event = make_event(timestamp=NOW + timedelta(minutes=i))
            events.append(event)
            now = NOW + timedelta(minutes=i)
            fired.append(bool(engine.evaluate([rule], event, events, {}, now)))

        assert fired == [False, False, True]

    def test_events_outside_window_do_not_count(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(AlertCondition(type=ConditionType.FREQUENCY, threshold=2, time_window=5))
        old = make_event(timestamp=NOW - timedelta(minutes=10))
        new = make_event(timestamp=NOW)

        assert engine.evaluate([rule], new, [old, new], {}, NOW) == []


class TestNewIssueCondition:
    def test_only_unseen_hash_triggers(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(AlertCondition(type=ConditionType.NEW_ISSUE))
        event = make_event(grouping_hash="abc")

        assert engine.evaluate([rule], event, [event], {}, NOW) == [rule]
        assert engine.evaluate([rule], event, [event], {"abc": NOW}, NOW) == []


class TestUserImpactCondition:
    def test_counts_distinct_users(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(
            AlertCondition(type=ConditionType.USER_IMPACT, threshold=2, time_window=10)
        )
        same_user = [make_event(user_id="u1", timestamp=NOW) for _ in range(3)]
        assert engine.evaluate([rule], same_user[-1], same_user, {}, NOW) == []

        mixed = same_user + [make_event(user_id="u2", timestamp=NOW)]
        assert engine.evaluate([rule], mixed[-1], mixed, {}, NOW) == [rule]


class TestCustomCondition:
    def test_filter_on_message(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(
            AlertCondition(type=ConditionType.CUSTOM, filter=EventFilter(message="critical"))
        )
        assert engine.evaluate([rule], make_event(message="CRITICAL failure"), [], {}, NOW)
        assert not engine.evaluate([rule], make_event(message="minor"), [], {}, NOW)

    def test_filter_on_environment_and_tags(self, make_event):
        engine = AlertRuleEngine()
        rule = _rule(
            AlertCondition(
                type=ConditionType.CUSTOM,
                filter=EventFilter(environment=("production",), tags={"team": "payments"}),
            )
        )
        prod = make_event(tags={"environment": "production", "team": "payments"})
        test = make_event(tags={"environment": "test", "team": "payments"})

        assert engine.evaluate([rule], prod, [], {}, NOW) == [rule]
        assert engine.evaluate([rule], test, [], {}, NOW) == []

    def test_no_filter_always_fires(self, make_event):
        rule = _rule(AlertCondition(type=ConditionType.CUSTOM))
        assert AlertRuleEngine().evaluate([rule], make_event(), [], {}, NOW) == [rule]

    def test_disabled_rules_are_skipped(self, make_event):
        rule = _rule(AlertCondition(type=ConditionType.CUSTOM), enabled=False)
        assert AlertRuleEngine().evaluate([rule], make_event(), [], {}, NOW) == []


class TestAlertThrottle:
    def test_cooldown_suppresses_repeat(self):
        throttle = AlertThrottle(cooldown_seconds=300)

        assert throttle.allow("r1", NOW) is True
        assert throttle.allow("r1", NOW + timedelta(seconds=299)) is False
        assert throttle.allow("r1", NOW + timedelta(seconds=300)) is True
        assert throttle.last_alerted("r1") == NOW + timedelta(seconds=300)

    def test_cooldown_is_per_rule(self):
        throttle = AlertThrottle(cooldown_seconds=300)
        assert throttle.allow("r1", NOW)
        assert throttle.allow("r2", NOW)

    def test_max_alerts_per_window(self):
        throttle = AlertThrottle(cooldown_seconds=0, max_alerts=2, time_window_seconds=60)

        assert throttle.allow("a", NOW)
        assert throttle.allow("b", NOW + timedelta(seconds=1))
        assert not throttle.allow("c", NOW + timedelta(seconds=2))
        assert throttle.allow("c", NOW + timedelta(seconds=61))

    def test_zero_max_alerts_means_unlimited(self):
        throttle = AlertThrottle(cooldown_seconds=0, max_alerts=0)
        assert all(throttle.allow(f"r{i}", NOW) for i in range(50))

    def test_disabled_throttle_admits_everything(self):
        throttle = AlertThrottle(enabled=False)
        assert throttle.allow("r1", NOW)
        assert throttle.allow("r1", NOW)

    @pytest.mark.parametrize("cooldown", [-5, 0])
    def test_non_positive_cooldown(self, cooldown):
        throttle = AlertThrottle(cooldown_seconds=cooldown)
        assert throttle.allow("r1", NOW)
        assert throttle.allow("r1", NOW)

    def test_configure_keeps_history(self):
        throttle = AlertThrottle(cooldown_seconds=300)
        throttle.allow("r1", NOW)
        throttle.configure(
            enabled=True, cooldown_seconds=600, max_alerts=10, time_window_seconds=3600
        )
        assert not throttle.allow("r1", NOW + timedelta(seconds=400))

    def test_reset(self):
        throttle = AlertThrottle(cooldown_seconds=300)
        throttle.allow("r1", NOW)
        throttle.reset()
        assert throttle.allow("r1", NOW)
