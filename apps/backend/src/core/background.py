"""Fire-and-forget background tasks with their own error channel.

Work that must not hold up a conversational turn (escalation emails, the
post-stream structured-data broadcast) is spawned here. Each task is tracked
until it finishes, a failure is logged rather than raised into the request
that triggered it, and pending tasks are drained when the application shuts
down.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from functools import lru_cache
from typing import Any


logger = logging.getLogger(__name__)


class BackgroundTaskManager:
    """Track spawned tasks so they are neither garbage collected nor lost."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, Any], *, name: str | None = None
    ) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and return its task."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending tasks; cancel whatever is still running at ``timeout``."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info("Awaiting %d pending background tasks", len(tasks))
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

        failed = sum(
            1 for t in done if not t.cancelled() and t.exception() is not None
        )
        logger.info(
            "Background tasks drained: %d completed, %d failed, %d cancelled",
            len(done) - failed,
            failed,
            len(still_running),
        )


@lru_cache
def get_background_tasks() -> BackgroundTaskManager:
    """Process-wide task manager shared by request handlers and tools."""
    return BackgroundTaskManager()
