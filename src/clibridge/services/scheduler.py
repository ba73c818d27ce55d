"""Fire-and-forget background work."""

import asyncio
from collections.abc import Awaitable

import structlog

logger = structlog.get_logger()


class BackgroundScheduler:
    """Runs side effects as asyncio tasks detached from the request.

    Failures are logged and never reach the caller. Tasks are referenced
    until they finish so the loop cannot garbage-collect them midway.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[object]] = set()

    def schedule(self, name: str, work: Awaitable[object]) -> None:
        """Start ``work`` on the running loop."""
        task = asyncio.ensure_future(work)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for outstanding work, e.g. on shutdown."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            logger.warning("background_task_abandoned", task=task.get_name())
            task.cancel()

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(error),
                error_type=type(error).__name__,
            )
        else:
            logger.debug("background_task_done", task=task.get_name())
