"""Telltale: in-process error tracking with breadcrumbs and alerting.

Typical use::

    import telltale

    telltale.tracker.initialize()
    try:
        risky()
    except Exception as e:
        telltale.tracker.capture_exception(e)

``telltale.tracker`` is a process-wide ErrorTracker configured from
the environment and created on first access.
"""

import threading
from typing import TYPE_CHECKING, Any

from telltale.core.request_context import reset_request_context, set_request_context

if TYPE_CHECKING:
    from telltale.error_tracker import ErrorTracker

__version__ = "1.0.0"

_tracker: "ErrorTracker | None" = None
_tracker_lock = threading.Lock()


def get_tracker() -> "ErrorTracker":
    """Return the process-wide tracker, creating it on first use."""
    global _tracker
    if _tracker is None:
        with _tracker_lock:
            if _tracker is None:
                from telltale.main import create_tracker

                _tracker = create_tracker()
    return _tracker


def __getattr__(name: str) -> Any:
    if name == "tracker":
        return get_tracker()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "get_tracker",
    "reset_request_context",
    "set_request_context",
]
