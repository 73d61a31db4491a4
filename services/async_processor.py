# services/async_processor.py
"""Fire-and-forget background tasks on the running event loop"""
import asyncio
import logging
from typing import Coroutine, Optional, Set

from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

class BackgroundTaskRunner:
    """
    Background task holder for mirror pushes.

    Keeps strong references so tasks are not garbage-collected mid-flight,
    logs failures instead of losing them, and lets shutdown wait for
    whatever is still pending via drain().
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit_task(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Schedule a coroutine on the running loop (fire-and-forget)."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error}", exc_info=error)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for running tasks to complete."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

# Global instance
background_tasks = BackgroundTaskRunner()
