"""Log records as breadcrumbs.

Attaches a handler to the root logger so the host application's log
output becomes the trail of actions leading up to an error.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from telltale.core.models import Breadcrumb, BreadcrumbType, Level
from telltale.core.ports import InstrumentationPort

if TYPE_CHECKING:
    from telltale.error_tracker import ErrorTracker

_OWN_LOGGER_PREFIX = "telltale"


def _level_for(levelno: int) -> Level:
    if levelno >= logging.CRITICAL:
        return Level.CRITICAL
    if levelno >= logging.ERROR:
        return Level.ERROR
    if levelno >= logging.WARNING:
        return Level.WARNING
    return Level.INFO


class OwnRecordFilter(logging.Filter):
    """Rejects records from telltale's own loggers.

    Filters run before the handler lock is taken, so a tracker thread
    logging while it holds the tracker lock never contends with a host
    thread that is inside emit().
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return not (
            record.name == _OWN_LOGGER_PREFIX
            or record.name.startswith(_OWN_LOGGER_PREFIX + ".")
        )


class BreadcrumbLogHandler(logging.Handler):
    """Forwards records to the tracker's breadcrumb ring."""

    def __init__(self, tracker: "ErrorTracker", level: int = logging.INFO):
        super().__init__(level)
        self.tracker = tracker
        self.addFilter(OwnRecordFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _level_for(record.levelno)
            self.tracker.add_breadcrumb(
                Breadcrumb(
                    timestamp=datetime.fromtimestamp(record.created, timezone.utc),
                    type=BreadcrumbType.ERROR if record.levelno >= logging.ERROR else BreadcrumbType.DEBUG,
                    category="console",
                    message=record.getMessage(),
                    level=level,
                    data={"logger": record.name, "levelname": record.levelname},
                )
            )
        except Exception:
            self.handleError(record)


class LoggingBreadcrumbInstrumentation(InstrumentationPort):
    """Installs BreadcrumbLogHandler on a logger (root by default)."""

    name = "logging"

    def __init__(self, logger_name: str | None = None, level: int = logging.INFO):
        self.logger_name = logger_name
        self.level = level
        self._handler: BreadcrumbLogHandler | None = None

    def install(self, tracker: "ErrorTracker") -> None:
        self._handler = BreadcrumbLogHandler(tracker, self.level)
        logging.getLogger(self.logger_name).addHandler(self._handler)

    def uninstall(self) -> None:
        if self._handler is not None:
            logging.getLogger(self.logger_name).removeHandler(self._handler)
            self._handler = None
