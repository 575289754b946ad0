"""In-flight analysis deduplication.

Two callers asking for the same fingerprint at the same moment (for
example two editor panes showing one file) share one pipeline run. The
first caller owns the run; later callers await a future that resolves
with the owner's result or exception. If the owner is cancelled, a
joiner that was not cancelled itself runs the operation again.

Single-process only: the guard lives on one DiagnosticPipeline.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class IdempotencyGuard(Generic[T]):
    """Deduplicates in-flight async operations by key.

    Usage::

        guard: IdempotencyGuard[list[Diagnostic]] = IdempotencyGuard()
        diagnostics = await guard.execute(fingerprint.key, run)
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[T]] = {}
        self.joined = 0
        self.rerun_after_cancel = 0

    async def execute(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run operation, or join the run already in flight for key."""
        pending = self._in_flight.get(key)
        if pending is not None:
            self.joined += 1
            try:
                # A cancelled joiner must not cancel the owner's run.
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if not pending.cancelled() or (
                    current is not None and current.cancelling()
                ):
                    raise
            # The owner was cancelled but this caller was not.
            self.rerun_after_cancel += 1
            return await self.execute(key, operation)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            result = await operation()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except BaseException as exc:
            future.set_exception(exc)
            # Retrieved here so an unjoined failure is not logged twice.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._in_flight.pop(key, None)

    @property
    def active_keys(self) -> list[str]:
        """Return keys with a run currently in flight."""
        return list(self._in_flight)
