"""Single-flight coordination for concurrent cache refreshes.

At most one operation per key runs at a time inside this process. Callers
arriving while it runs await the same task and observe the same result or
the same exception. Cross-process deduplication is not provided: each
worker process runs its own refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """Registry of in-flight operations keyed by string.

    One instance is owned by the cache refresh service for the process
    lifetime; tests create a fresh instance each.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    def in_flight(self, key: str) -> bool:
        """Return True while an operation for key is registered."""
        return key in self._in_flight

    async def run(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation for key, or join the one already running.

        The task is registered before the first suspension point, so a
        concurrent caller can never start a second operation for the same
        key. The key is released when the task finishes, whatever the
        outcome. Cancelling one waiter does not cancel the shared task.
        """
        task = self._in_flight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(operation())
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        else:
            logger.debug("Joining in-flight operation %s", key)
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()
