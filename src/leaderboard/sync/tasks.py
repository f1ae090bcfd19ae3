"""Supervised fire-and-forget tasks.

Sync cycles and their enrichment fan-out run detached from whoever started
them.  ``BackgroundTasks`` keeps a strong reference to each task until it
settles and logs any failure; nothing is ever re-raised to the spawner.
Failures of detached work are therefore only visible in the logs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger("squadboard.sync.tasks")


class BackgroundTasks:
    """A set of detached asyncio tasks with logged outcomes.

    Usage::

        tasks = BackgroundTasks()
        tasks.spawn(enricher.refresh_team_members(team_ids), name="team members")
        ...
        await tasks.wait_idle(timeout=30)
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule ``coro`` on the running loop without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task %r was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %r failed: %s",
                task.get_name(), exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait until no task is pending, including tasks spawned meanwhile.

        Args:
            timeout: Give up after this many seconds (None = wait forever).

        Returns:
            True if idle, False if the timeout expired first.  Nothing is
            cancelled either way.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(set(self._tasks), timeout=remaining)
            # let done-callbacks drop finished tasks before re-checking
            await asyncio.sleep(0)
        return True
