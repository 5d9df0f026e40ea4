"""Background Task Runner — fire-and-forget asyncio tasks with a managed lifetime."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Schedules detached units of work for the worker.

    Handlers call ``submit`` and return immediately; each unit reports its
    outcome through the database. Failures are logged at the task boundary
    and never reach the event loop. Runs inside FastAPI's lifespan: ``stop``
    cancels whatever is still in flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def start(self) -> None:
        self._running = True
        logger.info("BackgroundTaskRunner started")

    async def stop(self) -> None:
        """Cancel in-flight tasks and wait for them to unwind."""
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("BackgroundTaskRunner stopped (%d task(s) cancelled)", len(tasks))

    def submit(self, name: str, work: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Schedule ``work`` and return without waiting for it."""
        if not self._running:
            raise RuntimeError("BackgroundTaskRunner is not running")
        task = asyncio.create_task(self._run(name, work), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Scheduled background task %s", name)
        return task

    async def drain(self) -> None:
        """Wait until every scheduled task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, name: str, work: Callable[[], Awaitable[None]]) -> None:
        try:
            await work()
        except asyncio.CancelledError:
            logger.warning("Background task %s cancelled", name)
            raise
        except Exception:
            logger.exception("Background task %s failed", name)
