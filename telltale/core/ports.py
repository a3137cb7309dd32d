"""Port interfaces for the Telltale capture service.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Delivery Ports** (core hands events and alerts out)
   - EventSinkPort: Ship every admitted event to a remote collector
   - AlertChannelPort: Deliver a fired alert to one channel
   - BackgroundRunnerPort: Run delivery coroutines off the capture path

2. **Context Ports** (core reads ambient state)
   - UserStoragePort: Key-value storage read for the current user

3. **Instrumentation Ports** (host runtime feeds the core)
   - InstrumentationPort: Installable hook that calls into the tracker
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from .models import Alert, ErrorEvent

if TYPE_CHECKING:
    from telltale.error_tracker import ErrorTracker


class EventSinkPort(ABC):
    """Port for forwarding captured events to a remote collector."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the sink has an endpoint to deliver to."""

    @abstractmethod
    async def send_event(self, event: ErrorEvent) -> None:
        """Deliver one event.

        Raises:
            Exception: On transport failure or a non-2xx response.
                The dispatcher catches and logs it.
        """

    async def close(self) -> None:
        """Release any held connections."""


class AlertChannelPort(ABC):
    """Port for delivering a fired alert to one external channel.

    Implementations must handle:
    - Formatting the alert appropriately for the medium
    - Reporting whether they are configured (missing webhook URLs,
      tokens or hosts mean the channel is effectively disabled)
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the channel is enabled and has what it needs to send."""

    @abstractmethod
    async def send(self, alert: Alert) -> None:
        """Send a notification for a fired alert rule.

        Raises:
            Exception: If the channel is unavailable. The dispatcher
                catches and logs it, never re-raising into capture.
        """

    async def close(self) -> None:
        """Release any held connections."""


class BackgroundRunnerPort(ABC):
    """Port for fire-and-forget execution of delivery coroutines."""

    @abstractmethod
    def submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Schedule a coroutine without waiting for it."""

    @abstractmethod
    def flush(self, timeout: float | None = None) -> bool:
        """Wait for submitted work to finish.

        Returns:
            True if everything finished within the timeout.
        """

    @abstractmethod
    def close(self, timeout: float | None = None) -> None:
        """Finish outstanding work and stop accepting more."""


class UserStoragePort(ABC):
    """Key-value storage read for the current user.

    Mirrors the local/session storage split of browser hosts: the
    tracker reads a primary persistent store first, then a
    session-scoped fallback.
    """

    def __init__(self) -> None:
        self._listeners: list[Callable[[str], None]] = []

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored string for key, or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a string value under key."""

    def subscribe(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked with the key after each change."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[str], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            listener(key)


class InstrumentationPort(ABC):
    """An installable runtime hook that feeds events into the tracker.

    ``performance`` marks hooks gated by the performance monitoring flag.
    """

    name: str = "instrumentation"
    performance: bool = False

    @abstractmethod
    def install(self, tracker: "ErrorTracker") -> None:
        """Attach the hook to the host runtime."""

    @abstractmethod
    def uninstall(self) -> None:
        """Detach the hook and restore whatever it replaced."""
