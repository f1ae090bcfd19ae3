"""Pydantic models for system endpoints."""

from __future__ import annotations

from datetime import datetime

from src.models.base import SquadBase


class SyncStatus(SquadBase):
    enabled: bool
    running: bool
    ticks: int
    pending_tasks: int


class HealthRead(SquadBase):
    status: str
    version: str
    environment: str
    database: str
    sync: SyncStatus
    timestamp: datetime
