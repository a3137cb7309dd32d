"""Performance breadcrumbs.

Records slow operations ("long tasks") and failed resource loads as
breadcrumbs, so an error report shows what was dragging before it.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from telltale.core.models import Breadcrumb, BreadcrumbType, Level
from telltale.core.ports import InstrumentationPort

if TYPE_CHECKING:
    from telltale.error_tracker import ErrorTracker

logger = logging.getLogger(__name__)

LONG_TASK_THRESHOLD_MS = 50.0


class PerformanceMonitor(InstrumentationPort):
    """Long-task and resource-failure monitor.

    Host code wraps units of work in ``track()`` and reports failed
    fetches through ``record_resource_failure()``. Both are no-ops
    while the monitor is not installed.
    """

    name = "performance"
    performance = True

    def __init__(self, threshold_ms: float = LONG_TASK_THRESHOLD_MS):
        self.threshold_ms = threshold_ms
        self._tracker: "ErrorTracker | None" = None

    def install(self, tracker: "ErrorTracker") -> None:
        self._tracker = tracker

    def uninstall(self) -> None:
        self._tracker = None

    @property
    def active(self) -> bool:
        return self._tracker is not None

    @contextmanager
    def track(self, name: str) -> Iterator[None]:
        """Time the wrapped block; record it when it exceeds the threshold."""
        start_time = time.time()
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            if duration_ms > self.threshold_ms:
                self.record_long_task(duration_ms, start_time, name)

    def record_long_task(
        self, duration_ms: float, start_time: float, attribution: str = "unknown"
    ) -> None:
        tracker = self._tracker
        if tracker is None:
            return
        tracker.add_breadcrumb(
            Breadcrumb(
                timestamp=datetime.now(timezone.utc),
                type=BreadcrumbType.NAVIGATION,
                category="performance",
                message="Long task detected",
                level=Level.WARNING,
                data={
                    "duration": round(duration_ms, 3),
                    "startTime": start_time,
                    "attribution": attribution,
                },
            )
        )
        logger.debug(f"Long task '{attribution}' took {duration_ms:.1f}ms")

    def record_resource_failure(self, src: str, kind: str = "resource") -> None:
        """Record a resource (file, URL, asset) that failed to load."""
        tracker = self._tracker
        if tracker is None:
            return
        tracker.add_breadcrumb(
            Breadcrumb(
                timestamp=datetime.now(timezone.utc),
                type=BreadcrumbType.ERROR,
                category="resource",
                message="Resource load failed",
                level=Level.ERROR,
                data={"tagName": kind, "src": src},
            )
        )
