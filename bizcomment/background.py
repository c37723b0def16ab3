"""
Detached background work: cache backfills and feed event publishing.

Work submitted here runs on its own ``asyncio`` task, outside the
request's cancellation scope, under its own deadline.  Its outcome is
only observable through logs; the submitting request never waits for it.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundTasks:
    def __init__(self) -> None:
        # Strong references; the event loop only keeps weak ones.
        self._tasks: set[asyncio.Task] = set()

    def submit(
        self,
        factory: Callable[[], Awaitable[object]],
        *,
        timeout: float,
        name: str,
    ) -> asyncio.Task:
        """
        Schedule ``factory()`` on a detached task bounded by *timeout* seconds.

        The coroutine is created inside the task so that a failing factory is
        logged like any other failure instead of raising into the caller.
        """
        task = asyncio.create_task(self._run(factory, timeout, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        factory: Callable[[], Awaitable[object]],
        timeout: float,
        name: str,
    ) -> None:
        try:
            await asyncio.wait_for(factory(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("background task %s timed out after %.1fs", name, timeout)
        except asyncio.CancelledError:
            logger.warning("background task %s cancelled", name)
            raise
        except Exception:
            logger.exception("background task %s failed", name)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task.  Used at shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Module-level singleton shared by the repository and the service.
background_tasks = BackgroundTasks()
