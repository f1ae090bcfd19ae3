"""Fan-out enrichment for teams whose points changed.

For each changed team the roster is fetched; members whose points changed
are written to ``user_points``; members among those whose activity data is
public get their per-activity statistics fetched, change-detected and
written to ``user_activity_points``.

Each round (all rosters, then all activity statistics) issues its requests
concurrently and completes only when every request has settled.  One failed
request fails the whole round for that kind; partial results are dropped.

The engine spawns ``refresh_team_members`` detached, and this module spawns
the activity round detached in turn, so neither round can fail the cycle
that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, TypeVar

from src.leaderboard.base import (
    ChallengePlatform,
    SnapshotKind,
    SnapshotStore,
    TeamMember,
    UserActivity,
    WriteResult,
    utc_now,
)
from src.leaderboard.credentials import CredentialGate
from src.leaderboard.sync.changes import detect_changes
from src.leaderboard.sync.tasks import BackgroundTasks

logger = logging.getLogger("squadboard.sync.enrichment")

T = TypeVar("T")


async def settle_all(requests: Iterable[Awaitable[T]]) -> list[T]:
    """Await every request concurrently; raise the first failure after all settle."""
    results = await asyncio.gather(*requests, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results  # type: ignore[return-value]


def log_write_result(result: WriteResult) -> None:
    if result.ok:
        logger.info("Stored %d %s records", result.written, result.kind.value)
    else:
        logger.error("Failed to store %s records: %s", result.kind.value, result.error)


class FanOutEnricher:
    """Fetch and persist member points and activity statistics.

    Args:
        platform: Platform adapter.
        gate:     Credential gate; each round acquires its own bearer token
                  since detached rounds can outlive the cycle's credential.
        store:    Snapshot store for reads and delta writes.
        tasks:    Supervisor for the detached activity round.
    """

    def __init__(
        self,
        platform: ChallengePlatform,
        gate: CredentialGate,
        store: SnapshotStore,
        tasks: BackgroundTasks,
    ) -> None:
        self._platform = platform
        self._gate = gate
        self._store = store
        self._tasks = tasks

    async def refresh_team_members(self, team_ids: list[str]) -> list[TeamMember]:
        """Fetch rosters for ``team_ids`` and persist changed member points.

        Returns:
            The changed members (empty if nothing changed).
        """
        if not team_ids:
            return []

        logger.info("Handling team member points fetching for %d teams", len(team_ids))
        credential = await self._gate.acquire()
        rosters = await settle_all(
            self._platform.get_team_roster(credential.access_token, team_id)
            for team_id in team_ids
        )
        members = [member for roster in rosters for member in roster.members]

        last_points = await self._store.read_last_snapshot(
            SnapshotKind.USER, [m.user_id for m in members]
        )
        now = utc_now()
        changed = detect_changes(members, last_points)

        if not changed:
            logger.info("No users scores changed")
            return []

        visible_ids = [m.user_id for m in changed if m.activity_visible]
        if visible_ids:
            self._tasks.spawn(
                self.refresh_user_activities(visible_ids), name="user activities"
            )

        log_write_result(await self._store.write_deltas(SnapshotKind.USER, now, changed))
        return changed

    async def refresh_user_activities(self, user_ids: list[str]) -> list[UserActivity]:
        """Fetch activity statistics for ``user_ids`` and persist the changes.

        Returns:
            The changed (user, activity) records.
        """
        if not user_ids:
            return []

        logger.info("Handling user activity fetching for %d users", len(user_ids))
        credential = await self._gate.acquire()
        statistics = await settle_all(
            self._platform.get_user_activities(credential.access_token, user_id)
            for user_id in user_ids
        )
        activities = [a for stats in statistics for a in stats.activities]

        last_activities = await self._store.read_last_snapshot(
            SnapshotKind.USER_ACTIVITY, user_ids
        )
        now = utc_now()
        changed = detect_changes(activities, last_activities)

        if not changed:
            logger.info("No user activities changed")
            return []

        log_write_result(
            await self._store.write_deltas(SnapshotKind.USER_ACTIVITY, now, changed)
        )
        return changed
