"""Error capture facade.

ErrorTracker is the public surface of the service. It owns every piece
of process-wide mutable state (event buffer, breadcrumb ring, grouping
counters, alert throttle, user context) and orchestrates:
- Building events from exceptions, messages and runtime hooks
- Sampling and filtering
- Alert rule evaluation and throttling
- Fire-and-forget delivery through the background runner

Lifecycle: UNINITIALIZED -> INITIALIZING -> ACTIVE, and back to
UNINITIALIZED through teardown().
"""

import atexit
import json
import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable, Coroutine, Mapping, Sequence
from dataclasses import fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from telltale.config import AlertRuleSettings, TrackerSettings
from telltale.core.alerting import AlertRuleEngine, AlertThrottle
from telltale.core.breadcrumbs import BreadcrumbRing
from telltale.core.dispatcher import DeliveryDispatcher
from telltale.core.grouping import GroupingHasher
from telltale.core.models import (
    Alert,
    AlertRule,
    Breadcrumb,
    BreadcrumbType,
    ErrorEvent,
    ErrorStats,
    EventFilter,
    ExceptionDetails,
    JSONValue,
    Level,
    Mechanism,
    MechanismType,
    StackFrame,
    UserContext,
)
from telltale.core.ports import BackgroundRunnerPort, InstrumentationPort
from telltale.core.request_context import current_request_context
from telltale.core.sampling import SamplingFilter
from telltale.core.serialization import (
    breadcrumb_to_dict,
    event_to_dict,
    stats_to_dict,
    user_to_dict,
)
from telltale.core.stacktrace import StackTraceParser
from telltale.core.user_context import UserContextResolver, runtime_user_agent

logger = logging.getLogger(__name__)

_EVENT_FIELDS = frozenset(f.name for f in fields(ErrorEvent))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _deep_merge(base: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class TrackerState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    ACTIVE = "active"


class ErrorTracker:
    """Captures errors, records breadcrumbs and raises alerts.

    No operation raises into the caller: capture-path failures are
    logged and swallowed so telemetry never takes the host down.
    """

    def __init__(
        self,
        settings: TrackerSettings | None = None,
        dispatcher: DeliveryDispatcher | None = None,
        runner: BackgroundRunnerPort | None = None,
        user_resolver: UserContextResolver | None = None,
        instrumentations: Sequence[InstrumentationPort] = (),
        stack_parser: StackTraceParser | None = None,
        clock: Callable[[], datetime] = _utcnow,
        rng: Callable[[], float] | None = None,
    ):
        self.dispatcher = dispatcher or DeliveryDispatcher()
        self.runner = runner
        self.user_resolver = user_resolver
        self.instrumentations = list(instrumentations)
        self.stack_parser = stack_parser or StackTraceParser()
        self.hasher = GroupingHasher()
        self.engine = AlertRuleEngine()
        self.clock = clock
        self._rng = rng

        self._lock = threading.RLock()
        self._state = TrackerState.UNINITIALIZED
        self._installed: list[InstrumentationPort] = []
        self._user_agent = runtime_user_agent()
        self._session_id = uuid.uuid4().hex
        self._user_context: UserContext | None = None

        self._settings = settings or TrackerSettings()
        self._events: deque[ErrorEvent] = deque(maxlen=self._settings.max_events)
        self._breadcrumbs = BreadcrumbRing(self._settings.breadcrumb_capacity)
        self._error_counts: dict[str, int] = {}
        self._last_seen: dict[str, datetime] = {}
        self._throttle = AlertThrottle()
        self._alert_rules: list[AlertRule] = [
            rule.to_rule() for rule in self._settings.alerting.rules
        ]
        self._apply_settings()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TrackerState.ACTIVE

    def initialize(self) -> None:
        """Install runtime hooks and detect the user context.

        Idempotent: repeated calls never double-register hooks. A no-op
        when the ``instrument`` setting is off.
        """
        with self._lock:
            if self._state != TrackerState.UNINITIALIZED or not self._settings.instrument:
                return
            self._state = TrackerState.INITIALIZING

            failures: list[tuple[str, Exception]] = []
            performance = self._settings.sampling.performance_monitoring
            for instrumentation in self.instrumentations:
                if instrumentation.performance and not performance:
                    continue
                try:
                    instrumentation.install(self)
                    self._installed.append(instrumentation)
                except Exception as e:
                    failures.append((instrumentation.name, e))

            self._start_user_detection()
            self._state = TrackerState.ACTIVE

        # Deliveries queued by an uncaught exception run on a daemon
        # thread; drain them before the interpreter tears it down
        atexit.register(self._flush_at_exit)
        for name, error in failures:
            logger.warning(f"Failed to install {name} instrumentation: {error}")

        logger.info(
            "Error tracking initialized",
            extra={"instrumentations": [i.name for i in self._installed]},
        )

    def teardown(self, timeout: float | None = 5.0) -> None:
        """Remove every hook and listener, then drain delivery.

        Delivery adapters are closed but recreate their connections on
        demand, so the tracker can be initialized again afterwards.
        """
        with self._lock:
            if self._state == TrackerState.UNINITIALIZED:
                return
            failures: list[tuple[str, Exception]] = []
            for instrumentation in reversed(self._installed):
                try:
                    instrumentation.uninstall()
                except Exception as e:
                    failures.append((instrumentation.name, e))
            self._installed.clear()
            self._stop_user_detection()
            self._state = TrackerState.UNINITIALIZED

        atexit.unregister(self._flush_at_exit)
        for name, error in failures:
            logger.warning(f"Failed to uninstall {name} instrumentation: {error}")

        if not self.flush(timeout):
            logger.warning("Teardown timed out waiting for pending deliveries")
        self._submit(self.dispatcher.close())
        self.flush(timeout)
        logger.info("Error tracking torn down")

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending deliveries. Returns False on timeout."""
        if self.runner is None:
            return True
        return self.runner.flush(timeout)

    def _flush_at_exit(self) -> None:
        if not self.flush(self._settings.delivery_timeout_seconds):
            logger.warning("Exiting with deliveries still pending")

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Tear down and stop the background runner for good."""
        self.teardown(timeout)
        if self.runner is not None:
            self._submit(self.dispatcher.close())
            self.runner.close(timeout)

    # ========================================================================
    # ERROR CAPTURE
    # ========================================================================

    def capture_error(self, event: ErrorEvent) -> None:
        """Filter, store, alert on and deliver an event."""
        try:
            if not self._sampling.should_capture(event.message, event.filename):
                return

            alerts: list[Alert] = []
            throttled: list[str] = []
            with self._lock:
                self._events.append(event)
                now = self.clock()

                triggered: list[AlertRule] = []
                if self._settings.alerting.enabled:
                    triggered = self.engine.evaluate(
                        self._alert_rules, event, self._events, self._last_seen, now
                    )

                key = event.grouping_hash
                self._error_counts[key] = self._error_counts.get(key, 0) + 1
                self._last_seen[key] = event.timestamp

                for rule in triggered:
                    if self._throttle.allow(rule.id, now):
                        alerts.append(
                            Alert(
                                rule=rule,
                                event=event,
                                timestamp=now,
                                environment=self._settings.environment,
                            )
                        )
                    else:
                        throttled.append(rule.id)

            # Logged outside the lock: host log handlers may call back in
            for rule_id in throttled:
                logger.info(
                    f"Alert rule '{rule_id}' triggered but throttled",
                    extra={"rule_id": rule_id, "event_id": event.id},
                )
            self._submit(self.dispatcher.send_event(event))
            for alert in alerts:
                logger.info(
                    f"Alert rule '{alert.rule.id}' triggered",
                    extra={"rule_id": alert.rule.id, "event_id": event.id},
                )
                self._submit(self.dispatcher.send_alert(alert))

            if self._settings.environment == "development":
                self._log_diagnostics(event)
        except Exception as e:
            logger.error(f"Failed to capture event: {e}", exc_info=True)

    def capture_exception(
        self, error: BaseException, context: Mapping[str, Any] | None = None
    ) -> None:
        """Capture a handled exception.

        Args:
            error: The exception; its traceback supplies the stack.
            context: Optional ErrorEvent field overrides. ``tags`` and
                ``extra`` are merged over the defaults; other fields
                replace them.
        """
        try:
            value = str(error)
            message = value or type(error).__name__
            frames = self.stack_parser.from_exception(error)
            top = f"{frames[-1].filename}:{frames[-1].function}" if frames else ""
            event = self._build_event(
                level=Level.ERROR,
                message=message,
                exception_type=type(error).__name__,
                value=value,
                frames=frames,
                mechanism=Mechanism(type=MechanismType.MANUAL, handled=True),
                fingerprint=(message, top),
                grouping_hash=self.hasher.hash(
                    message, self.hasher.stack_signature(frames)
                ),
            )
            self.capture_error(self._apply_context(event, context))
        except Exception as e:
            logger.error(f"Failed to capture exception: {e}", exc_info=True)

    def capture_message(
        self,
        message: str,
        level: Level | str = Level.INFO,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Capture a plain message as an event of type "Message"."""
        try:
            event = self._build_event(
                level=Level(level),
                message=message,
                exception_type="Message",
                value=message,
                frames=[],
                mechanism=Mechanism(type=MechanismType.MANUAL, handled=True),
                fingerprint=(message,),
                grouping_hash=self.hasher.hash(message),
            )
            self.capture_error(self._apply_context(event, context))
        except Exception as e:
            logger.error(f"Failed to capture message: {e}", exc_info=True)

    def capture_global_error(
        self,
        message: str,
        filename: str | None = None,
        lineno: int = 0,
        colno: int = 0,
        error: BaseException | None = None,
    ) -> None:
        """Capture an uncaught error reported by a runtime hook."""
        try:
            extra: dict[str, JSONValue] = {"lineno": lineno, "colno": colno}
            if filename:
                extra["filename"] = filename
            event = self._build_event(
                level=Level.ERROR,
                message=message,
                exception_type=type(error).__name__ if error is not None else "Error",
                value=message,
                frames=self.stack_parser.from_exception(error) if error is not None else [],
                mechanism=Mechanism(type=MechanismType.ONERROR, handled=False),
                fingerprint=(message, filename or ""),
                grouping_hash=self.hasher.hash(message, filename),
                extra=extra,
            )
            self.capture_error(event)
        except Exception as e:
            logger.error(f"Failed to capture uncaught error: {e}", exc_info=True)

    def capture_unhandled_rejection(self, reason: Any) -> None:
        """Capture a failure nobody awaited (e.g. an asyncio task exception)."""
        try:
            frames: list[StackFrame] = []
            if isinstance(reason, BaseException):
                message = str(reason) or type(reason).__name__
                exception_type = type(reason).__name__
                frames = self.stack_parser.from_exception(reason)
                reason_repr: JSONValue = repr(reason)
            elif isinstance(reason, str):
                message = reason
                exception_type = "UnhandledRejection"
                reason_repr = reason
            else:
                message = json.dumps(reason, default=str)
                exception_type = "UnhandledRejection"
                reason_repr = message

            event = self._build_event(
                level=Level.ERROR,
                message=message,
                exception_type=exception_type,
                value=message,
                frames=frames,
                mechanism=Mechanism(
                    type=MechanismType.ONUNHANDLEDREJECTION, handled=False
                ),
                fingerprint=(message, "unhandled_rejection"),
                grouping_hash=self.hasher.hash(message, "unhandled_rejection"),
                tags={"type": "unhandled_rejection"},
                extra={"reason": reason_repr},
            )
            self.capture_error(event)
        except Exception as e:
            logger.error(f"Failed to capture unhandled rejection: {e}", exc_info=True)

    def send_test_error(self) -> None:
        """Capture a synthetic exception; development environment only."""
        if self._settings.environment != "development":
            return
        try:
            raise RuntimeError("Test error from ErrorTracker")
        except RuntimeError as e:
            self.capture_exception(e)

    # ========================================================================
    # BREADCRUMBS
    # ========================================================================

    def add_breadcrumb(self, breadcrumb: Breadcrumb) -> None:
        with self._lock:
            self._breadcrumbs.add(breadcrumb)

    def clear_breadcrumbs(self) -> None:
        with self._lock:
            self._breadcrumbs.clear()

    def get_breadcrumbs(self) -> list[Breadcrumb]:
        with self._lock:
            return list(self._breadcrumbs.get_all())

    def record_navigation(self, to: str, replace: bool = False) -> None:
        """Record a route change made by the host application."""
        self.add_breadcrumb(
            Breadcrumb(
                timestamp=self.clock(),
                type=BreadcrumbType.NAVIGATION,
                category="navigation",
                message="Page replace" if replace else "Page navigation",
                level=Level.INFO,
                data={"to": to},
            )
        )

    def record_click(self, element: Mapping[str, Any]) -> None:
        """Record a user interaction with a UI element."""
        text = element.get("textContent")
        self.add_breadcrumb(
            Breadcrumb(
                timestamp=self.clock(),
                type=BreadcrumbType.USER,
                category="ui.click",
                message="User clicked element",
                level=Level.INFO,
                data={
                    "tagName": element.get("tagName"),
                    "className": element.get("className"),
                    "id": element.get("id"),
                    "textContent": str(text)[:50] if text is not None else None,
                },
            )
        )

    # ========================================================================
    # USER CONTEXT
    # ========================================================================

    def set_user_context(self, user: UserContext) -> None:
        with self._lock:
            self._user_context = user

    def get_user_context(self) -> UserContext | None:
        return self._user_context

    def refresh_user_context(self) -> None:
        """Re-run detection; called whenever a user storage changes."""
        if self.user_resolver is None:
            return
        user = self.user_resolver.detect()
        with self._lock:
            self._user_context = user

    def _on_storage_change(self, key: str) -> None:
        self.refresh_user_context()

    def _start_user_detection(self) -> None:
        if self.user_resolver is None:
            return
        self.refresh_user_context()
        self.user_resolver.primary.subscribe(self._on_storage_change)
        self.user_resolver.fallback.subscribe(self._on_storage_change)

    def _stop_user_detection(self) -> None:
        if self.user_resolver is None:
            return
        self.user_resolver.primary.unsubscribe(self._on_storage_change)
        self.user_resolver.fallback.unsubscribe(self._on_storage_change)

    def _current_user(self) -> UserContext:
        if self._user_context is not None:
            return self._user_context
        if self.user_resolver is not None:
            return self.user_resolver.default_context()
        return UserContext(id=self._session_id, user_agent=self._user_agent)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_events(self, event_filter: EventFilter | None = None) -> list[ErrorEvent]:
        with self._lock:
            events = list(self._events)
        if event_filter is None:
            return events
        return [e for e in events if event_filter.matches(e)]

    def get_error_stats(self) -> ErrorStats:
        """Totals, per-level and per-type histograms, 24h hourly trend."""
        with self._lock:
            events = list(self._events)

        by_level = {level.value: 0 for level in Level}
        by_type: dict[str, int] = {}
        for event in events:
            by_level[event.level.value] += 1
            by_type[event.exception.type] = by_type.get(event.exception.type, 0) + 1

        now = self.clock()
        hour = timedelta(hours=1)
        trend = []
        for i in range(23, -1, -1):
            start = now - (i + 1) * hour
            end = now - i * hour
            trend.append(sum(1 for e in events if start < e.timestamp <= end))

        return ErrorStats(
            total=len(events),
            by_level=by_level,
            by_type=by_type,
            recent_trend=tuple(trend),
        )

    def get_error_count(self, grouping_hash: str) -> int:
        with self._lock:
            return self._error_counts.get(grouping_hash, 0)

    def clear_events(self) -> None:
        """Drop stored events and every grouping counter."""
        with self._lock:
            self._events.clear()
            self._error_counts.clear()
            self._last_seen.clear()

    def export_data(self) -> str:
        """Serialize events, breadcrumbs, user context, stats and config."""
        with self._lock:
            events = list(self._events)
            breadcrumbs = self._breadcrumbs.get_all()
            user = self._user_context
        return json.dumps(
            {
                "timestamp": self.clock().isoformat(),
                "events": [event_to_dict(e) for e in events],
                "breadcrumbs": [breadcrumb_to_dict(b) for b in breadcrumbs],
                "userContext": user_to_dict(user),
                "stats": stats_to_dict(self.get_error_stats()),
                "config": self._settings.model_dump(mode="json"),
            },
            indent=2,
        )

    # ========================================================================
    # CONFIGURATION & RULES
    # ========================================================================

    def get_config(self) -> TrackerSettings:
        return self._settings.model_copy(deep=True)

    def update_config(self, updates: Mapping[str, Any]) -> None:
        """Deep-merge updates into the settings.

        Invalid updates are logged and ignored. Supplying
        ``alerting.rules`` replaces the active rule list.
        """
        if not isinstance(updates, Mapping):
            logger.error(
                f"Ignoring configuration update of type {type(updates).__name__}"
            )
            return
        try:
            merged = _deep_merge(self._settings.model_dump(), updates)
            settings = TrackerSettings.model_validate(merged)
        except ValidationError as e:
            logger.error(f"Ignoring invalid configuration update: {e}")
            return

        with self._lock:
            self._settings = settings
            alerting = updates.get("alerting")
            if isinstance(alerting, BaseModel) or (
                isinstance(alerting, Mapping) and "rules" in alerting
            ):
                self._alert_rules = [r.to_rule() for r in settings.alerting.rules]
            self._apply_settings()

    def add_alert_rule(self, rule: AlertRule | AlertRuleSettings) -> None:
        if isinstance(rule, AlertRuleSettings):
            rule = rule.to_rule()
        with self._lock:
            self._alert_rules.append(rule)

    def remove_alert_rule(self, rule_id: str) -> None:
        with self._lock:
            self._alert_rules = [r for r in self._alert_rules if r.id != rule_id]

    def get_alert_rules(self) -> list[AlertRule]:
        with self._lock:
            return list(self._alert_rules)

    def _apply_settings(self) -> None:
        settings = self._settings
        sampling_kwargs: dict[str, Any] = {}
        if self._rng is not None:
            sampling_kwargs["rng"] = self._rng
        self._sampling = SamplingFilter(
            error_sample_rate=settings.sampling.error_sample_rate,
            ignore_errors=settings.filtering.ignore_errors,
            ignore_urls=settings.filtering.ignore_urls,
            allow_urls=settings.filtering.allow_urls,
            **sampling_kwargs,
        )

        throttling = settings.alerting.throttling
        self._throttle.configure(
            enabled=throttling.enabled,
            cooldown_seconds=throttling.cooldown,
            max_alerts=throttling.max_alerts,
            time_window_seconds=throttling.time_window,
        )

        if self._events.maxlen != settings.max_events:
            self._events = deque(self._events, maxlen=settings.max_events)
        if self._breadcrumbs.capacity != settings.breadcrumb_capacity:
            ring = BreadcrumbRing(settings.breadcrumb_capacity)
            for breadcrumb in self._breadcrumbs.get_all():
                ring.add(breadcrumb)
            self._breadcrumbs = ring

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _build_event(
        self,
        level: Level,
        message: str,
        exception_type: str,
        value: str,
        frames: Sequence[StackFrame],
        mechanism: Mechanism,
        fingerprint: tuple[str, ...],
        grouping_hash: str,
        tags: Mapping[str, str] | None = None,
        extra: Mapping[str, JSONValue] | None = None,
    ) -> ErrorEvent:
        """Assemble an event; breadcrumbs are snapshotted right here."""
        with self._lock:
            breadcrumbs = self._breadcrumbs.get_all()
            user = self._current_user()
        return ErrorEvent(
            id=uuid.uuid4().hex,
            timestamp=self.clock(),
            level=level,
            message=message,
            exception=ExceptionDetails(
                type=exception_type,
                value=value,
                stacktrace=tuple(frames),
                mechanism=mechanism,
            ),
            user=user,
            request=current_request_context(),
            breadcrumbs=breadcrumbs,
            tags={
                "environment": self._settings.environment,
                "release": self._settings.release,
                **(tags or {}),
            },
            extra={**(extra or {}), "userAgent": self._user_agent},
            fingerprint=fingerprint,
            grouping_hash=grouping_hash,
        )

    def _apply_context(
        self, event: ErrorEvent, context: Mapping[str, Any] | None
    ) -> ErrorEvent:
        if not context:
            return event

        overrides: dict[str, Any] = {}
        for key, value in context.items():
            if key == "tags":
                overrides["tags"] = {**event.tags, **value}
            elif key == "extra":
                overrides["extra"] = {**event.extra, **value}
            elif key == "level":
                overrides["level"] = Level(value)
            elif key == "fingerprint":
                overrides["fingerprint"] = tuple(value)
            elif key in _EVENT_FIELDS:
                overrides[key] = value
            else:
                logger.debug(f"Ignoring unknown event context field '{key}'")
        return replace(event, **overrides)

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        if self.runner is None:
            coro.close()
            return
        try:
            self.runner.submit(coro)
        except Exception as e:
            coro.close()
            logger.warning(f"Failed to schedule delivery: {e}")

    def _log_diagnostics(self, event: ErrorEvent) -> None:
        logger.info(
            "Error captured\n"
            f"Message: {event.message}\n"
            f"Exception: {event.exception.type}: {event.exception.value}\n"
            f"Context: {json.dumps(event_to_dict(event), indent=2, default=str)}"
        )
