import asyncio
import logging
from typing import Awaitable

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Runs notification coroutines in the background.

    dispatch() returns immediately; the caller's transaction never waits for,
    or sees errors from, the notification. Failures are logged by the task's
    done-callback. drain() awaits whatever is still running (shutdown, tests).
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, coroutine: Awaitable, description: str) -> asyncio.Task:
        task = asyncio.create_task(coroutine, name=f"notify:{description}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Notification task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"❌ Notification task {task.get_name()} failed: {type(error).__name__}: {error}",
                         exc_info=error)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        if not self._tasks:
            return
        done, not_done = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in not_done:
            logger.warning(f"Notification task {task.get_name()} still running after drain timeout, cancelling")
            task.cancel()
