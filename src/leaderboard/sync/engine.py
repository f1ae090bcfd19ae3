"""One synchronization cycle.

    1. Acquire a credential (single-flight)
    2. Ask the platform whether the challenge window is open; stop if not
    3. Read the last team-points snapshot
    4. Walk the full ranking feed
    5. Detect which teams changed
    6. Spawn the member/activity fan-out detached for the changed teams
    7. Write the changed team points

Failures in steps 1–5 propagate out of ``run_cycle``; the scheduler's task
supervisor logs them and the next tick starts from scratch.  The fan-out
has its own supervisor entry and cannot fail the cycle.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from src.leaderboard.base import (
    ChallengePlatform,
    SnapshotKind,
    SnapshotStore,
    SyncCycle,
    utc_now,
)
from src.leaderboard.challenge import is_challenge_active
from src.leaderboard.credentials import CredentialGate
from src.leaderboard.sync.changes import detect_changes
from src.leaderboard.sync.enrichment import FanOutEnricher, log_write_result
from src.leaderboard.sync.ranking import collect_ranking
from src.leaderboard.sync.tasks import BackgroundTasks

logger = logging.getLogger("squadboard.sync.engine")


class SyncEngine:
    """Run leaderboard sync cycles against one platform and one store.

    Usage::

        engine = SyncEngine(platform, gate, store, tasks, max_pages=500)
        cycle = await engine.run_cycle()
    """

    def __init__(
        self,
        platform: ChallengePlatform,
        gate: CredentialGate,
        store: SnapshotStore,
        tasks: BackgroundTasks,
        max_pages: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._platform = platform
        self._gate = gate
        self._store = store
        self._tasks = tasks
        self._max_pages = max_pages
        self._clock = clock
        self._enricher = FanOutEnricher(platform, gate, store, tasks)

    @property
    def enricher(self) -> FanOutEnricher:
        return self._enricher

    async def run_cycle(self) -> SyncCycle:
        """Execute one cycle.

        Returns:
            The SyncCycle record with counts for logging and health checks.

        Raises:
            CredentialError, SyncError: From the credential gate, challenge
                gate or ranking walk.
        """
        cycle = SyncCycle(started_at=self._clock())
        logger.info(
            "--- %s --- Running scheduled task: fetch and store team data",
            cycle.started_at.isoformat(),
        )

        credential = await self._gate.acquire()
        cycle.challenge_active = await is_challenge_active(
            self._platform, credential, now=cycle.started_at
        )
        if not cycle.challenge_active:
            logger.info("Challenge not in progress, skipping")
            return cycle

        last_points = await self._store.read_last_snapshot(SnapshotKind.TEAM)
        now = self._clock()

        entries = await collect_ranking(
            self._platform, self._gate, max_pages=self._max_pages
        )
        cycle.teams_observed = len(entries)

        changed = detect_changes(entries, last_points)
        cycle.teams_changed = len(changed)
        if not changed:
            logger.info("No teams scores changed")
            return cycle

        self._tasks.spawn(
            self._enricher.refresh_team_members([e.entity_id for e in changed]),
            name="team members",
        )

        log_write_result(await self._store.write_deltas(SnapshotKind.TEAM, now, changed))
        logger.info(
            "Scheduled task finished: %d/%d teams changed",
            cycle.teams_changed, cycle.teams_observed,
        )
        return cycle
