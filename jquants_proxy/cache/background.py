"""Detached background work that outlives the response it was scheduled for."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from jquants_proxy.errors.logger import ErrorCategory, ErrorSeverity, get_logger

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Supervises fire-and-forget tasks.

    Scheduled coroutines run on the current event loop. The supervisor holds
    a strong reference until each task finishes (the loop itself only keeps
    weak ones) and logs failures; callers never await or see the outcome.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def wait_until(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Schedule a coroutine without blocking the caller."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"Background task {task.get_name()} cancelled")
            return

        exc = task.exception()
        if exc is not None:
            get_logger().log_exception(
                exc,
                category=ErrorCategory.CACHE,
                severity=ErrorSeverity.WARNING,
                metadata={"task": task.get_name()},
            )

    async def drain(self) -> None:
        """Wait for every pending task; used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)
