"""
Best-effort background tasks

Side effects that must never fail the operation that triggered them
(notification deposit, push delivery) run as detached asyncio tasks.
Every failure is routed to a failure callback instead of being lost.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from app.core.logging import get_logger

logger = get_logger(__name__)

FailureCallback = Callable[[str, BaseException], None]


def log_failure(name: str, exc: BaseException) -> None:
    logger.error(f"Background task '{name}' failed: {exc}", exc_info=exc)


class BestEffortRunner:
    """Spawn detached tasks and keep them referenced until they finish"""

    def __init__(self, on_error: Optional[FailureCallback] = None):
        self._tasks: Set[asyncio.Task] = set()
        self._on_error = on_error or log_failure

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Awaitable[Any],
        *,
        name: str,
        on_error: Optional[FailureCallback] = None,
    ) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        callback = on_error or self._on_error

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                try:
                    callback(name, exc)
                except Exception as cb_exc:
                    logger.error(f"Failure callback for '{name}' raised: {cb_exc}")

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait until every task (including ones spawned meanwhile) has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
