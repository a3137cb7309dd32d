"""Shared fixtures for the Telltale test suite."""

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest

from telltale.config import TrackerSettings
from telltale.core.dispatcher import DeliveryDispatcher
from telltale.core.models import (
    AlertChannel,
    ErrorEvent,
    ExceptionDetails,
    Level,
    Mechanism,
    MechanismType,
    RequestContext,
    StackFrame,
    UserContext,
)
from telltale.error_tracker import ErrorTracker
from telltale.tests.fakes import (
    FakeAlertChannel,
    FakeClock,
    FakeEventSink,
    InlineRunner,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_event(clock: FakeClock) -> Callable[..., ErrorEvent]:
    """Factory for events; keyword arguments override the defaults."""

    def _make(
        message: str = "Something broke",
        grouping_hash: str = "hash-1",
        level: Level = Level.ERROR,
        user_id: str = "user-1",
        timestamp: datetime | None = None,
        frames: tuple[StackFrame, ...] = (),
        tags: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
        exception_type: str = "Error",
    ) -> ErrorEvent:
        return ErrorEvent(
            id=uuid.uuid4().hex,
            timestamp=timestamp or clock(),
            level=level,
            message=message,
            exception=ExceptionDetails(
                type=exception_type,
                value=message,
                stacktrace=frames,
                mechanism=Mechanism(type=MechanismType.MANUAL, handled=True),
            ),
            user=UserContext(id=user_id, user_agent="python/test"),
            request=RequestContext(url="app.py"),
            breadcrumbs=(),
            tags=tags if tags is not None else {"environment": "test", "release": "1.0.0"},
            extra=extra or {},
            fingerprint=(message,),
            grouping_hash=grouping_hash,
        )

    return _make


@pytest.fixture
def settings() -> TrackerSettings:
    """Isolated settings: no .env file, alerting rules cleared."""
    return TrackerSettings(
        _env_file=None,  # type: ignore[call-arg]
        environment="test",
        alerting={"rules": []},
    )


@pytest.fixture
def channels() -> dict[AlertChannel, FakeAlertChannel]:
    return {
        AlertChannel.EMAIL: FakeAlertChannel(),
        AlertChannel.SLACK: FakeAlertChannel(),
        AlertChannel.WEBHOOK: FakeAlertChannel(),
    }


@pytest.fixture
def event_sink() -> FakeEventSink:
    return FakeEventSink()


@pytest.fixture
def runner() -> InlineRunner:
    return InlineRunner()


@pytest.fixture
def make_tracker(
    settings: TrackerSettings,
    channels: dict[AlertChannel, FakeAlertChannel],
    event_sink: FakeEventSink,
    runner: InlineRunner,
    clock: FakeClock,
) -> Callable[..., ErrorTracker]:
    """Factory for trackers wired to fakes; kwargs override constructor args."""

    def _make(**kwargs: Any) -> ErrorTracker:
        options: dict[str, Any] = {
            "settings": settings,
            "dispatcher": DeliveryDispatcher(channels=channels, event_sink=event_sink),
            "runner": runner,
            "clock": clock,
            "rng": lambda: 0.0,
        }
        options.update(kwargs)
        return ErrorTracker(**options)

    return _make


@pytest.fixture
def tracker(make_tracker: Callable[..., ErrorTracker]) -> ErrorTracker:
    return make_tracker()
