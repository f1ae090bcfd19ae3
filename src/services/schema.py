"""TimescaleDB schema bootstrap.

Idempotent: every statement is ``IF NOT EXISTS`` / ``if_not_exists``, so it
runs on every startup.  All three series are hypertables partitioned on
``time`` with a per-entity ``time DESC`` index for latest-value lookups.
"""

from __future__ import annotations

import logging

import asyncpg

from src.services.database import get_connection

logger = logging.getLogger("squadboard.db.schema")

SCHEMA_STATEMENTS: list[tuple[str, str]] = [
    (
        "team_points",
        """
        CREATE TABLE IF NOT EXISTS team_points (
            time TIMESTAMPTZ NOT NULL,
            team_id TEXT NOT NULL,
            points INTEGER NOT NULL
        );
        SELECT create_hypertable('team_points', 'time', if_not_exists => TRUE);
        CREATE INDEX IF NOT EXISTS ix_team_points_team_id_time
            ON team_points (team_id, time DESC);
        """,
    ),
    (
        "user_points",
        """
        CREATE TABLE IF NOT EXISTS user_points (
            time TIMESTAMPTZ NOT NULL,
            user_id TEXT NOT NULL,
            points INTEGER NOT NULL
        );
        SELECT create_hypertable('user_points', 'time', if_not_exists => TRUE);
        CREATE INDEX IF NOT EXISTS ix_user_points_user_id_time
            ON user_points (user_id, time DESC);
        """,
    ),
    (
        "user_activity_points",
        """
        CREATE TABLE IF NOT EXISTS user_activity_points (
            time TIMESTAMPTZ NOT NULL,
            user_id TEXT NOT NULL,
            activity_id TEXT NOT NULL,
            value DOUBLE PRECISION NOT NULL,
            points INTEGER NOT NULL
        );
        SELECT create_hypertable('user_activity_points', 'time', if_not_exists => TRUE);
        CREATE INDEX IF NOT EXISTS ix_user_activity_points_user_id_time
            ON user_activity_points (user_id, time DESC);
        CREATE INDEX IF NOT EXISTS ix_user_activity_points_user_activity_time
            ON user_activity_points (user_id, activity_id, time DESC);
        """,
    ),
]


async def initialize_database() -> None:
    """Create tables, hypertables and indexes in one transaction.

    Raises:
        asyncpg.PostgresError: If any statement fails; nothing is committed
            and startup should abort.
    """
    logger.info("Initializing database schema")
    try:
        async with get_connection() as conn:
            for table, ddl in SCHEMA_STATEMENTS:
                await conn.execute(ddl)
                logger.info("Table %r ensured", table)
    except asyncpg.PostgresError as exc:
        logger.error(
            "Database initialization failed, transaction rolled back: %s "
            "(sqlstate=%s, detail=%s)",
            exc, exc.sqlstate, getattr(exc, "detail", None),
        )
        raise
    logger.info("Database initialization complete")
