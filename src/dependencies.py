"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.config import Settings, get_settings
from src.services.points_storage import PointsStore


@dataclass(frozen=True)
class AuthContext:
    """Inbound caller accepted by the session auth middleware."""

    subject_user_id: str  # the platform user our own session is logged in as
    token: str


async def get_current_session(request: Request) -> AuthContext:
    """Return the caller context set by ``SessionAuthMiddleware``."""
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return auth


def get_points_store(request: Request) -> PointsStore:
    store: PointsStore | None = getattr(request.app.state, "points_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Storage not ready")
    return store


# Annotated shortcuts for route signatures
CurrentSession = Annotated[AuthContext, Depends(get_current_session)]
Points = Annotated[PointsStore, Depends(get_points_store)]
AppSettings = Annotated[Settings, Depends(get_settings)]
