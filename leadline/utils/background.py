"""
Background Task Runner
Detached asyncio tasks for fire-and-forget provider actions.

Failures are routed to the logger only; the caller never awaits them.
"""
import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """
    Spawns and tracks detached tasks.

    The event loop only keeps weak references to tasks, so the runner holds
    them until they finish. One runner lives on app.state for the lifetime
    of the API process.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, description: str) -> asyncio.Task:
        """Schedule a coroutine without awaiting it."""
        task = asyncio.create_task(self._guard(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable, description: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning(f"Background task cancelled: {description}")
            raise
        except Exception as e:
            logger.error(f"Background task failed ({description}): {e}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all in-flight tasks (used on shutdown)."""
        # Tasks may spawn follow-up tasks, so loop until the set is empty
        while self._tasks:
            _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                for task in pending:
                    task.cancel()
                logger.warning(f"Cancelled {len(pending)} background tasks on drain")
                return
