"""Summary: Detached background task runner.

Importance: Owns fire-and-forget syncs and cache refreshes so their failures are logged, not lost.
Alternatives: Call asyncio.create_task directly and drop the reference.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine


logger = logging.getLogger(__name__)

ErrorHook = Callable[[str, BaseException], None]


class BackgroundTasks:
    """Summary: Spawns coroutines as detached tasks on the running loop.

    Importance: Callers never await these tasks; errors go to the log and an optional hook.
    Alternatives: Use a thread pool executor for background work.
    """

    def __init__(self, on_error: ErrorHook | None = None) -> None:
        self._on_error = on_error
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        """Summary: Launch a coroutine without awaiting it.

        Importance: Keeps a strong reference until the task finishes so it is not garbage collected.
        Alternatives: Keep no reference and rely on the loop.
        """

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Summary: Wait for every spawned task, including ones spawned while waiting.

        Importance: Lets shutdown and tests observe background work completing.
        Alternatives: Cancel pending tasks on shutdown.
        """

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Background task %s failed: %s", task.get_name(), exc)
        if self._on_error is not None:
            self._on_error(task.get_name(), exc)
