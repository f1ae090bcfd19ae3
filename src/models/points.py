"""Pydantic models for the points history endpoints."""

from __future__ import annotations

from datetime import datetime

from src.models.base import SquadBase


class TeamPointsRead(SquadBase):
    time: datetime
    team_id: str
    points: int


class UserPointsRead(SquadBase):
    time: datetime
    user_id: str
    points: int


class UserActivityPointsRead(SquadBase):
    time: datetime
    user_id: str
    activity_id: str
    value: float
    points: int
