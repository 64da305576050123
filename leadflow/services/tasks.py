"""
In-process job runner for fire-and-forget pipeline runs.

Endpoints enqueue a run and return immediately; the runner keeps a reference
to every task until it finishes and logs failures instead of losing them.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TaskRunner:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def enqueue(self, fn: Callable[..., Awaitable[Any]], *args, name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(fn(*args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background job %s failed: %s", task.get_name(), error)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every queued job (used on shutdown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


task_runner = TaskRunner()


def get_task_runner() -> TaskRunner:
    return task_runner
