"""Squadboard leaderboard sync engine.

Polls a fitness-challenge platform's team ranking, detects which teams,
members and member activities changed since the last stored observation,
and hands only those deltas to the time-series store.

Subpackages:
    adapters/ — Platform adapters (SquadEasy)
    sync/     — Ranking reader, change detector, fan-out, engine, scheduler

Core modules:
    base          — Canonical data models, ChallengePlatform and SnapshotStore ABCs
    credentials   — Credential store, single-flight gate, inbound token validator
    challenge     — Challenge window gate
    tokens        — Access-token claim parsing
    errors        — Error taxonomy
    config_loader — Load/validate/hot-reload sync_config.yaml
"""

from src.leaderboard.base import (
    ChallengePlatform,
    Credential,
    RankingEntry,
    SnapshotKind,
    SnapshotStore,
    SnapshotValue,
    TeamMember,
    UserActivity,
    WriteResult,
)
from src.leaderboard.config_loader import SyncConfig, get_sync_config

__all__ = [
    "ChallengePlatform",
    "Credential",
    "RankingEntry",
    "SnapshotKind",
    "SnapshotStore",
    "SnapshotValue",
    "TeamMember",
    "UserActivity",
    "WriteResult",
    "SyncConfig",
    "get_sync_config",
]
