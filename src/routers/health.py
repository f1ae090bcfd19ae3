"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from src.dependencies import AppSettings
from src.models.system import HealthRead
from src.services.database import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("squadboard.health")


@router.get("/health", response_model=HealthRead)
async def health_check(request: Request, settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also performs a lightweight DB connectivity check and reports the
    sync scheduler state.
    """
    db_ok = False
    try:
        pool = get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        db_ok = True
    except Exception as exc:
        logger.warning("Health check DB probe failed: %s", exc)

    scheduler = getattr(request.app.state, "scheduler", None)
    sync = {
        "enabled": settings.sync_enabled,
        "running": bool(scheduler and scheduler.running),
        "ticks": scheduler.ticks if scheduler else 0,
        "pending_tasks": scheduler.tasks.pending if scheduler else 0,
    }

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if db_ok else "unreachable",
        "sync": sync,
        "timestamp": datetime.now(timezone.utc),
    }
