"""Squadboard API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 3000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.leaderboard.adapters import SquadEasyAdapter
from src.leaderboard.config_loader import get_sync_config
from src.leaderboard.credentials import CredentialGate, CredentialStore, TokenValidator
from src.leaderboard.sync.engine import SyncEngine
from src.leaderboard.sync.scheduler import SyncScheduler
from src.leaderboard.sync.tasks import BackgroundTasks
from src.middleware.session_auth import SessionAuthMiddleware
from src.routers import health, points
from src.services.database import check_connection, close_pool, init_pool
from src.services.points_storage import PointsStore
from src.services.schema import initialize_database

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("squadboard")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks.

    Startup aborts (and the process exits) if the database is unreachable
    or the schema cannot be created.
    """
    settings = get_settings()
    config = get_sync_config()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info(
        "Starting Squadboard API v%s [%s]",
        settings.app_version,
        settings.environment,
    )

    await init_pool(settings)
    await check_connection()
    await initialize_database()

    platform = SquadEasyAdapter(
        base_url=settings.squad_api_base_url,
        ranking_type=config.ranking.type,
        season_id=config.ranking.season_id,
        timeout_seconds=settings.squad_request_timeout_seconds,
    )
    gate = CredentialGate(
        CredentialStore(
            platform,
            settings.squad_email,
            settings.squad_password,
            refresh_margin_seconds=config.credentials.refresh_margin_seconds,
        )
    )
    store = PointsStore()
    tasks = BackgroundTasks()
    engine = SyncEngine(
        platform, gate, store, tasks, max_pages=config.ranking.max_pages
    )
    scheduler = SyncScheduler(
        engine.run_cycle,
        interval_seconds=config.schedule.interval_seconds,
        tasks=tasks,
    )

    app.state.token_validator = TokenValidator(gate, platform)
    app.state.points_store = store
    app.state.scheduler = scheduler

    if settings.sync_enabled:
        scheduler.start()
    else:
        logger.info("Sync disabled; serving history only")

    yield

    scheduler.stop()
    if not await tasks.wait_idle(timeout=settings.shutdown_grace_seconds):
        logger.warning(
            "%d background tasks still running after %ss grace period",
            tasks.pending, settings.shutdown_grace_seconds,
        )
    await platform.aclose()
    await close_pool()
    logger.info("Squadboard API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Squadboard API",
        description=(
            "Leaderboard history for a team fitness challenge — team, member "
            "and per-activity points sampled from the challenge platform."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Middleware (order matters — outermost first) ----------

    # Bearer token checked against the platform
    app.add_middleware(SessionAuthMiddleware)

    # CORS must be the innermost middleware so it can handle preflight
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (always at /health) ----------
    app.include_router(health.router)

    # ---------- History ----------
    app.include_router(points.router)

    return app


app = create_app()
