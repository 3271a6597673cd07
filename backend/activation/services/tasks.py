"""Background task queue for fire-and-forget propagation.

Step writes return to the caller before the activation service has seen
them. The remote write and every document upload run as asyncio tasks
held here, so that:
  - tasks are strongly referenced until they finish
  - a failure is logged and recorded in `failures` instead of vanishing
    into an unawaited coroutine
  - shutdown (and tests) can `await drain()` for in-flight work

No timeouts or retries are applied; a hung request simply stays pending.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine

logger = logging.getLogger("activation.tasks")


@dataclass
class TaskFailure:
    name: str
    error: BaseException


class BackgroundTaskQueue:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failures: list[TaskFailure] = []
        self.completed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Schedule `coro` on the running loop without awaiting it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Scheduled background task %s", name)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failures.append(TaskFailure(task.get_name(), exc))
            logger.error(
                "Background task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )
        else:
            self.completed += 1

    async def drain(self) -> None:
        """Wait until every scheduled task (including ones spawned meanwhile) finishes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
