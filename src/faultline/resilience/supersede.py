"""Debounced, supersede-on-change task runner.

Each document key holds at most one pending analysis. Submitting new
content for a key cancels the task working on the older content, so a
burst of edits yields one analysis of the latest text instead of a
queue of stale ones.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SupersedingRunner(Generic[T]):
    """Run the latest submission per key, cancelling older ones."""

    def __init__(self, debounce_seconds: float = 0.0) -> None:
        self._debounce = max(0.0, debounce_seconds)
        self._tasks: dict[str, asyncio.Task[T]] = {}
        # Versions are unique across keys so a pruned key never reuses one.
        self._versions: dict[str, int] = {}
        self._counter = itertools.count(1)

    async def submit(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        *,
        default: T,
    ) -> T:
        """Schedule operation for key and await its result.

        Returns ``default`` when a newer submission for the same key
        cancels this one.
        """
        version = next(self._counter)
        self._versions[key] = version

        previous = self._tasks.get(key)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug(
                "event=analysis_superseded key=%s version=%d",
                key,
                version,
            )

        task = asyncio.create_task(self._run(operation))
        self._tasks[key] = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._versions.get(key) != version:
                return default
            raise
        finally:
            if self._tasks.get(key) is task and task.done():
                self._tasks.pop(key, None)
                self._versions.pop(key, None)

    async def _run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._debounce:
            await asyncio.sleep(self._debounce)
        return await operation()

    def cancel_all(self) -> int:
        """Cancel every pending task; return how many were cancelled."""
        cancelled = 0
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
                cancelled += 1
        # Waiters find no matching version and fall back to the default.
        self._tasks.clear()
        self._versions.clear()
        return cancelled

    @property
    def pending_keys(self) -> list[str]:
        """Keys whose latest submission is still running."""
        return [k for k, t in self._tasks.items() if not t.done()]
