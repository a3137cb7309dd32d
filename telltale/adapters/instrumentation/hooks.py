"""Uncaught error hooks.

ExceptHookInstrumentation wraps ``sys.excepthook`` and
``threading.excepthook``; AsyncioExceptionHandlerInstrumentation sets
an event loop exception handler so task failures nobody awaited are
captured. Both chain to whatever handler they replaced.
"""

import asyncio
import logging
import sys
import threading
import traceback
from types import TracebackType
from typing import TYPE_CHECKING, Any

from telltale.core.ports import InstrumentationPort

if TYPE_CHECKING:
    from telltale.error_tracker import ErrorTracker

logger = logging.getLogger(__name__)


class ExceptHookInstrumentation(InstrumentationPort):
    """Captures exceptions that escape the main thread or any worker thread."""

    name = "excepthook"

    def __init__(self) -> None:
        self._tracker: "ErrorTracker | None" = None
        self._original_excepthook: Any = None
        self._original_threading_excepthook: Any = None

    def install(self, tracker: "ErrorTracker") -> None:
        self._tracker = tracker
        self._original_excepthook = sys.excepthook
        self._original_threading_excepthook = threading.excepthook
        sys.excepthook = self._excepthook
        threading.excepthook = self._threading_excepthook

    def uninstall(self) -> None:
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._original_excepthook
        if threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._original_threading_excepthook
        self._tracker = None

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            self._capture(exc_value, exc_tb)
        self._original_excepthook(exc_type, exc_value, exc_tb)

    def _threading_excepthook(self, args: "threading.ExceptHookArgs") -> None:
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            self._capture(args.exc_value, args.exc_traceback)
        self._original_threading_excepthook(args)

    def _capture(self, exc_value: BaseException, exc_tb: TracebackType | None) -> None:
        tracker = self._tracker
        if tracker is None:
            return
        filename, lineno, colno = None, 0, 0
        if exc_tb is not None:
            summary = traceback.extract_tb(exc_tb)
            if summary:
                last = summary[-1]
                filename = last.filename
                lineno = last.lineno or 0
                colno = (last.colno + 1) if last.colno is not None else 0
        tracker.capture_global_error(
            message=str(exc_value) or type(exc_value).__name__,
            filename=filename,
            lineno=lineno,
            colno=colno,
            error=exc_value,
        )


class AsyncioExceptionHandlerInstrumentation(InstrumentationPort):
    """Captures exceptions from tasks and callbacks of one event loop.

    Without an explicit loop, the loop running at install time is
    hooked; when none is running the hook is skipped.
    """

    name = "asyncio"

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop
        self._tracker: "ErrorTracker | None" = None
        self._hooked_loop: asyncio.AbstractEventLoop | None = None
        self._original_handler: Any = None

    def install(self, tracker: "ErrorTracker") -> None:
        loop = self.loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop, asyncio hook not installed")
                return
        self._tracker = tracker
        self._hooked_loop = loop
        self._original_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle)

    def uninstall(self) -> None:
        loop = self._hooked_loop
        if loop is not None and not loop.is_closed():
            loop.set_exception_handler(self._original_handler)
        self._hooked_loop = None
        self._original_handler = None
        self._tracker = None

    def _handle(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        tracker = self._tracker
        if tracker is not None:
            exception = context.get("exception")
            if exception is not None:
                tracker.capture_unhandled_rejection(exception)
            else:
                tracker.capture_unhandled_rejection(context.get("message", "Unknown error"))

        if self._original_handler is not None:
            self._original_handler(loop, context)
        else:
            loop.default_exception_handler(context)
