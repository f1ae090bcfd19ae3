"""Points time series: snapshot reads, delta writes, history range reads.

Write contract: ``write_deltas`` never raises into the sync cycle.  A failed
batch is rolled back as a whole and reported through the returned
``WriteResult``; the caller decides to log and continue.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Hashable

import asyncpg

from src.leaderboard.base import (
    RankingEntry,
    SnapshotKind,
    SnapshotStore,
    SnapshotValue,
    TeamMember,
    UserActivity,
    WriteResult,
)
from src.services.database import get_pool

logger = logging.getLogger("squadboard.db.points")

_LATEST_TEAM_POINTS = """
    SELECT DISTINCT ON (team_id) team_id, points, time
    FROM team_points
    {where}
    ORDER BY team_id, time DESC
"""

_LATEST_USER_POINTS = """
    SELECT DISTINCT ON (user_id) user_id, points, time
    FROM user_points
    {where}
    ORDER BY user_id, time DESC
"""

_LATEST_USER_ACTIVITY_POINTS = """
    SELECT DISTINCT ON (user_id, activity_id) user_id, activity_id, value, points, time
    FROM user_activity_points
    {where}
    ORDER BY user_id, activity_id, time DESC
"""

_INSERT_SQL: dict[SnapshotKind, str] = {
    SnapshotKind.TEAM: "INSERT INTO team_points (time, team_id, points) VALUES ($1, $2, $3)",
    SnapshotKind.USER: "INSERT INTO user_points (time, user_id, points) VALUES ($1, $2, $3)",
    SnapshotKind.USER_ACTIVITY: (
        "INSERT INTO user_activity_points (time, user_id, activity_id, value, points) "
        "VALUES ($1, $2, $3, $4, $5)"
    ),
}


def _row_for(kind: SnapshotKind, timestamp: datetime, entity: Any) -> tuple:
    if kind is SnapshotKind.TEAM:
        return (timestamp, entity.entity_id, entity.points)
    if kind is SnapshotKind.USER:
        return (timestamp, entity.user_id, entity.points)
    return (timestamp, entity.user_id, entity.activity_id, entity.value, entity.points)


class PointsStore(SnapshotStore):
    """asyncpg-backed SnapshotStore plus the history queries.

    Args:
        pool: Connection pool.  Defaults to the process pool from
              ``src.services.database`` at call time.
    """

    def __init__(self, pool: asyncpg.Pool | None = None) -> None:
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        return self._pool or get_pool()

    # ------------------------------------------------------------------
    # SnapshotStore
    # ------------------------------------------------------------------

    async def read_last_snapshot(
        self, kind: SnapshotKind, ids: list[str] | None = None
    ) -> dict[Hashable, SnapshotValue]:
        """Return the latest row per entity, optionally limited to ``ids``.

        An empty ``ids`` list returns an empty snapshot without querying.
        """
        if ids is not None and not ids:
            return {}

        if kind is SnapshotKind.TEAM:
            template, id_column = _LATEST_TEAM_POINTS, "team_id"
        elif kind is SnapshotKind.USER:
            template, id_column = _LATEST_USER_POINTS, "user_id"
        else:
            template, id_column = _LATEST_USER_ACTIVITY_POINTS, "user_id"

        args: list[Any] = []
        where = ""
        if ids is not None:
            where = f"WHERE {id_column} = ANY($1::text[])"
            args.append(list(dict.fromkeys(ids)))

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(template.format(where=where), *args)

        if kind is SnapshotKind.USER_ACTIVITY:
            return {
                (r["user_id"], r["activity_id"]): SnapshotValue(
                    points=r["points"], value=r["value"], time=r["time"]
                )
                for r in rows
            }
        return {
            r[id_column]: SnapshotValue(points=r["points"], time=r["time"]) for r in rows
        }

    async def write_deltas(
        self,
        kind: SnapshotKind,
        timestamp: datetime,
        entities: list[RankingEntry] | list[TeamMember] | list[UserActivity],
    ) -> WriteResult:
        """Insert ``entities`` at ``timestamp`` in one transaction.

        Entities with a missing tracked value are skipped.  Empty input is a
        no-op.  Database failures roll the batch back and come back as
        ``WriteResult.error``.
        """
        valid = [
            e for e in entities
            if all(getattr(e, name) is not None for name in e.tracked_fields)
        ]
        if not valid:
            logger.info("No %s data provided to store", kind.value)
            return WriteResult(kind=kind)

        rows = [_row_for(kind, timestamp, e) for e in valid]
        logger.info(
            "Attempting to store %d %s records at %s",
            len(rows), kind.value, timestamp.isoformat(),
        )
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(_INSERT_SQL[kind], rows)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            return WriteResult(kind=kind, error=f"{type(exc).__name__}: {exc}")

        return WriteResult(kind=kind, written=len(rows))

    # ------------------------------------------------------------------
    # History range reads
    # ------------------------------------------------------------------

    async def team_points_between(
        self,
        start: datetime,
        end: datetime,
        aggregate: bool = False,
        bucket: str = "6 hours",
    ) -> list[dict[str, Any]]:
        """Team points in ``[start, end)``.

        With ``aggregate``, rows are collapsed into ``bucket``-wide time
        buckets holding each team's last value in the bucket.
        """
        if aggregate:
            logger.info("Building aggregated team query (%s buckets)", bucket)
            query = """
                SELECT time_bucket($3::text::interval, time) AS time, team_id,
                       last(points, time) AS points
                FROM team_points
                WHERE time >= $1 AND time < $2
                GROUP BY 1, team_id
                ORDER BY time ASC, team_id ASC
            """
            args: tuple = (start, end, bucket)
        else:
            query = """
                SELECT time, team_id, points FROM team_points
                WHERE time >= $1 AND time < $2
                ORDER BY time ASC, team_id ASC
            """
            args = (start, end)
        return await self._fetch_dicts(query, *args)

    async def user_points_between(
        self, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        return await self._fetch_dicts(
            """
            SELECT time, user_id, points FROM user_points
            WHERE time >= $1 AND time < $2
            ORDER BY time ASC, user_id ASC
            """,
            start, end,
        )

    async def user_activity_points_between(
        self, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        return await self._fetch_dicts(
            """
            SELECT time, user_id, activity_id, value, points FROM user_activity_points
            WHERE time >= $1 AND time < $2
            ORDER BY time ASC, user_id ASC
            """,
            start, end,
        )

    async def _fetch_dicts(self, query: str, *args: Any) -> list[dict[str, Any]]:
        logger.debug("Executing query: %s with params %s", " ".join(query.split()), args)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
        return [dict(r) for r in rows]
