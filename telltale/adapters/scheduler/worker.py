"""Background delivery worker.

Runs a private asyncio event loop on a daemon thread. The capture
path hands it delivery coroutines with run_coroutine_threadsafe and
returns immediately, whether or not the host application runs an
event loop of its own.
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any

from telltale.core.ports import BackgroundRunnerPort

logger = logging.getLogger(__name__)


class BackgroundLoopRunner(BackgroundRunnerPort):
    """Fire-and-forget coroutine runner backed by a daemon thread."""

    def __init__(self, thread_name: str = "telltale-delivery"):
        self.thread_name = thread_name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._pending: set[concurrent.futures.Future[Any]] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._run, name=self.thread_name, daemon=True
                )
                self._thread.start()
                logger.debug(f"Started delivery worker thread {self.thread_name}")
            return self._loop

    def _run(self) -> None:
        loop = self._loop
        assert loop is not None
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.run_until_complete(loop.shutdown_default_executor())
            finally:
                loop.close()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        if self._closed:
            raise RuntimeError("Delivery worker is closed")
        loop = self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(self._guarded(coro), loop)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)

    async def _guarded(self, coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await coro
        except Exception as e:
            logger.error(f"Background delivery failed: {e}", exc_info=True)
            return None

    def _on_done(self, future: concurrent.futures.Future[Any]) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> bool:
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    def close(self, timeout: float | None = None) -> None:
        """Drain pending deliveries, then stop the loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        if not self.flush(timeout):
            logger.warning("Delivery worker closed with deliveries still pending")

        loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.debug(f"Stopped delivery worker thread {self.thread_name}")
