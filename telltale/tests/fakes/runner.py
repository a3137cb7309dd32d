"""Synchronous background runner for deterministic tests."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from telltale.core.ports import BackgroundRunnerPort


class InlineRunner(BackgroundRunnerPort):
    """Runs each submitted coroutine to completion before returning.

    Only usable from code that is not already inside an event loop.
    """

    def __init__(self) -> None:
        self.submitted = 0
        self.flush_call_count = 0
        self.closed = False

    def submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        if self.closed:
            coro.close()
            raise RuntimeError("runner closed")
        self.submitted += 1
        asyncio.run(coro)

    def flush(self, timeout: float | None = None) -> bool:
        self.flush_call_count += 1
        return True

    def close(self, timeout: float | None = None) -> None:
        self.closed = True
