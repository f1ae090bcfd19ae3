"""Points history endpoints: team, user and user-activity time series."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import CurrentSession, Points
from src.leaderboard.config_loader import get_sync_config
from src.models.base import ErrorDetail
from src.models.points import TeamPointsRead, UserActivityPointsRead, UserPointsRead

router = APIRouter(
    prefix="/api",
    tags=["points"],
    responses={400: {"model": ErrorDetail}, 500: {"model": ErrorDetail}},
)
logger = logging.getLogger("squadboard.routers.points")

_DATE_FORMAT_ERROR = (
    "Invalid date format. Please use ISO 8601 format (e.g., YYYY-MM-DDTHH:mm:ssZ)"
)


def _parse_instant(value: str) -> datetime:
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_range(start_date: str, end_date: str) -> tuple[datetime, datetime]:
    """Parse and order-check a ``[startDate, endDate)`` query range.

    Raises:
        HTTPException(400): On unparseable dates or ``start >= end``.
    """
    try:
        start = _parse_instant(start_date)
        end = _parse_instant(end_date)
    except ValueError:
        raise HTTPException(status_code=400, detail=_DATE_FORMAT_ERROR)
    if start >= end:
        raise HTTPException(status_code=400, detail="startDate must be before endDate")
    return start, end


@router.get("/team-points", response_model=list[TeamPointsRead])
async def list_team_points(
    session: CurrentSession,
    store: Points,
    start_date: str = Query(alias="startDate"),
    end_date: str = Query(alias="endDate"),
) -> Any:
    """Team points in the range; bucketed when the range is long."""
    start, end = parse_range(start_date, end_date)
    history = get_sync_config().history

    hours = (end - start).total_seconds() / 3600
    aggregate = hours > history.aggregation_threshold_hours
    logger.info("Query range: %.2f hours. Requires aggregation: %s", hours, aggregate)

    try:
        return await store.team_points_between(
            start, end, aggregate=aggregate, bucket=history.bucket
        )
    except Exception as exc:
        logger.error("Error executing team points query: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve data.")


@router.get("/user-points", response_model=list[UserPointsRead])
async def list_user_points(
    session: CurrentSession,
    store: Points,
    start_date: str = Query(alias="startDate"),
    end_date: str = Query(alias="endDate"),
) -> Any:
    start, end = parse_range(start_date, end_date)
    try:
        return await store.user_points_between(start, end)
    except Exception as exc:
        logger.error("Error executing user points query: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve data.")


@router.get("/user-activity-points", response_model=list[UserActivityPointsRead])
async def list_user_activity_points(
    session: CurrentSession,
    store: Points,
    start_date: str = Query(alias="startDate"),
    end_date: str = Query(alias="endDate"),
) -> Any:
    start, end = parse_range(start_date, end_date)
    try:
        return await store.user_activity_points_between(start, end)
    except Exception as exc:
        logger.error("Error executing user activity query: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve data.")
