"""Fixed-interval scheduler for sync cycles.

``start()`` fires a cycle immediately, then once per interval until
``stop()``.  Ticks are not mutually exclusive: when a cycle outlasts the
interval the next one starts anyway, and both may read and write the same
snapshots.  That is the accepted best-effort model; a warning is logged
whenever it happens.

``stop()`` only prevents future ticks.  A cycle already running, and any
fan-out it spawned, runs to completion.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from src.leaderboard.sync.tasks import BackgroundTasks

logger = logging.getLogger("squadboard.sync.scheduler")

DEFAULT_INTERVAL_SECONDS = 60


class SyncScheduler:
    """Run a cycle coroutine now and every ``interval_seconds`` after.

    Usage::

        scheduler = SyncScheduler(engine.run_cycle, interval_seconds=60, tasks=tasks)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[Any]],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            cycle:            Async callable running one sync cycle.  Its
                              exceptions are logged by the task supervisor.
            interval_seconds: Period between cycle starts.
            tasks:            Supervisor shared with the engine's fan-out.
        """
        self._cycle = cycle
        self._interval = interval_seconds
        self._tasks = tasks or BackgroundTasks()
        self._ticker: asyncio.Task | None = None
        self._current: asyncio.Task | None = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def ticks(self) -> int:
        """Number of cycles fired since construction."""
        return self._ticks

    @property
    def tasks(self) -> BackgroundTasks:
        return self._tasks

    def start(self) -> None:
        """Fire a cycle now and schedule the following ones.

        Must be called from inside a running event loop.  Calling it while
        already running is a no-op.
        """
        if self.running:
            logger.warning("SyncScheduler.start() called while already running")
            return
        logger.info("Starting sync scheduler (interval=%ss)", self._interval)
        self._ticker = asyncio.create_task(self._run(), name="sync scheduler")

    def stop(self) -> None:
        """Cancel future ticks.  In-flight cycles are left to finish."""
        if self._ticker is None:
            return
        self._ticker.cancel()
        self._ticker = None
        logger.info("Sync scheduler stopped after %d ticks", self._ticks)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            self._fire()
            next_at += self._interval
            now = loop.time()
            if next_at < now:
                # loop was stalled: drop the missed ticks rather than firing them back to back
                next_at = now + self._interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))

    def _fire(self) -> None:
        if self._current is not None and not self._current.done():
            logger.warning(
                "Previous sync cycle still running; starting tick %d anyway",
                self._ticks + 1,
            )
        self._ticks += 1
        self._current = self._tasks.spawn(self._cycle(), name=f"sync cycle {self._ticks}")
