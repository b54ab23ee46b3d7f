"""
Detached background tasks.
"""

import asyncio
from typing import Coroutine, Optional, Set

from shared.logging import get_logger


class DetachedTaskGroup:
    """Fire-and-forget tasks that nobody awaits on the request path.

    The group holds a reference to every running task so it is not garbage
    collected mid-flight, logs and swallows task failures, and lets tests and
    shutdown wait for outstanding work with ``wait_idle()``.
    """

    def __init__(self, name: str = "detached"):
        self.name = name
        self.logger = get_logger("offline.tasks")
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    def spawn(self, coro: Coroutine, *, label: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=label or self.name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            self.completed += 1
            return

        self.failed += 1
        self.logger.warning(
            "Detached task failed",
            group=self.name,
            label=task.get_name(),
            error=str(exc),
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
