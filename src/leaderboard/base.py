"""Base classes and canonical data models for the leaderboard sync engine.

The platform adapter returns these types and every stage of a sync cycle
(credential gate, ranking reader, change detector, fan-out, storage) consumes
them.  Remote JSON never travels past the adapter.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Hashable, Mapping

logger = logging.getLogger("squadboard.leaderboard")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credential:
    """Access/refresh token pair plus the subject it was issued to.

    Frozen: the credential store replaces the whole object on login or
    refresh, so a reader never sees a half-updated pair.

    Attributes:
        access_token:        Bearer token for platform calls.
        refresh_token:       Token exchanged (with the access token) for a new pair.
        subject_user_id:     Platform user id of the account we logged in as.
        access_token_expiry: UTC expiry parsed from the access token's claims.
    """

    access_token: str
    refresh_token: str
    subject_user_id: str
    access_token_expiry: datetime

    def expires_within(self, seconds: float, now: datetime | None = None) -> bool:
        """Return True if the access token expires less than ``seconds`` from now."""
        now = now or utc_now()
        return (self.access_token_expiry - now).total_seconds() < seconds


@dataclass(frozen=True)
class LoginResult:
    """Tokens and subject returned by a successful login."""

    access_token: str
    refresh_token: str
    subject_user_id: str


@dataclass(frozen=True)
class TokenPair:
    """Tokens returned by a successful refresh exchange."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Identity:
    """A platform user as returned by an identity lookup."""

    id: str
    display_name: str | None = None


# ---------------------------------------------------------------------------
# Challenge metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeWindow:
    """Start/end of the challenge the account is enrolled in.

    Either bound may be missing in the platform response.
    """

    start_at: datetime | None = None
    end_at: datetime | None = None


# ---------------------------------------------------------------------------
# Observed entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RankingEntry:
    """One team row from the season ranking feed.

    Attributes:
        entity_id: Team id.
        points:    Current team points (None if the feed omitted them).
    """

    tracked_fields: ClassVar[tuple[str, ...]] = ("points",)

    entity_id: str
    points: int | None = None

    @property
    def snapshot_key(self) -> str:
        return self.entity_id


@dataclass(frozen=True)
class RankingPage:
    """One page of the ranking feed.

    Attributes:
        elements: Parsed entries, in feed order.
        cursor:   Id of the last raw element on the page, used to request
                  the next one.  None when the page is empty or its last
                  element carries no id; either ends the walk.
    """

    elements: list[RankingEntry] = field(default_factory=list)
    cursor: str | None = None


@dataclass(frozen=True)
class TeamMember:
    """A member of a team roster.

    Attributes:
        user_id:          Platform user id.
        points:           Member points, None when the roster omits them.
        activity_visible: Whether the member's activity statistics are public.
    """

    tracked_fields: ClassVar[tuple[str, ...]] = ("points",)

    user_id: str
    points: int | None = None
    activity_visible: bool = False

    @property
    def snapshot_key(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class TeamRoster:
    team_id: str
    members: list[TeamMember] = field(default_factory=list)


@dataclass(frozen=True)
class UserActivity:
    """Per-user statistics for one activity type (e.g. running).

    Attributes:
        user_id:     Owner of the statistics.
        activity_id: Platform activity id.
        value:       Raw measured value (distance, steps, ...).
        points:      Points earned for that value.
    """

    tracked_fields: ClassVar[tuple[str, ...]] = ("points", "value")

    user_id: str
    activity_id: str
    value: float | None = None
    points: int | None = None

    @property
    def snapshot_key(self) -> tuple[str, str]:
        return (self.user_id, self.activity_id)


@dataclass(frozen=True)
class UserActivities:
    user_id: str
    activities: list[UserActivity] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class SnapshotKind(str, Enum):
    """Entity kinds that have their own time series."""

    TEAM = "team"
    USER = "user"
    USER_ACTIVITY = "user_activity"


@dataclass(frozen=True)
class SnapshotValue:
    """Last persisted values for one entity.

    ``value`` is only populated for user activities.
    """

    points: int | None
    value: float | None = None
    time: datetime | None = None


#: entity key (team id, user id, or (user id, activity id)) → last value
Snapshot = Mapping[Hashable, SnapshotValue]


@dataclass
class SyncCycle:
    """One execution of the synchronization cycle.

    Fan-out and persistence only happen when ``challenge_active`` is True.
    """

    started_at: datetime = field(default_factory=utc_now)
    challenge_active: bool = False
    teams_observed: int = 0
    teams_changed: int = 0


# ---------------------------------------------------------------------------
# Abstract platform interface
# ---------------------------------------------------------------------------


class ChallengePlatform(ABC):
    """Request functions the sync engine needs from the remote platform.

    Every call is a suspension point.  Implementations raise the
    ``src.leaderboard.errors`` taxonomy: ``AuthError`` for rejected
    credentials, ``NotFoundError`` for 404s, ``TransientNetworkError``
    for everything else.
    """

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Platform"

    @abstractmethod
    async def login(self, email: str, password: str) -> LoginResult:
        """Log in with identity secrets and resolve our own user id."""

    @abstractmethod
    async def refresh(self, access_token: str, refresh_token: str) -> TokenPair:
        """Exchange the current pair for a new one."""

    @abstractmethod
    async def lookup_identity(self, bearer_token: str, user_id: str) -> Identity:
        """Look up ``user_id`` using ``bearer_token`` for authentication."""

    @abstractmethod
    async def get_challenge(self, bearer_token: str) -> ChallengeWindow:
        """Fetch the current challenge metadata."""

    @abstractmethod
    async def get_ranking_page(
        self, bearer_token: str, cursor: str | None = None
    ) -> RankingPage:
        """Fetch one page of the season ranking.

        Args:
            bearer_token: Valid access token.
            cursor:       Last entity id of the previous page, or None for
                          the first page.
        """

    @abstractmethod
    async def get_team_roster(self, bearer_token: str, team_id: str) -> TeamRoster:
        """Fetch a team's members with their points and visibility flag."""

    @abstractmethod
    async def get_user_activities(
        self, bearer_token: str, user_id: str
    ) -> UserActivities:
        """Fetch per-activity statistics for a user."""


# ---------------------------------------------------------------------------
# Persistence interface
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one delta write.

    Writes never raise into the sync cycle; a failed batch is rolled back
    and reported here for the caller to log.

    Attributes:
        kind:    Entity kind written.
        written: Number of rows inserted (0 on failure or empty input).
        error:   Error message if the batch was rolled back.
    """

    kind: SnapshotKind
    written: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SnapshotStore(ABC):
    """Read side (last snapshot) and write side (deltas) of the time series."""

    @abstractmethod
    async def read_last_snapshot(
        self, kind: SnapshotKind, ids: list[str] | None = None
    ) -> dict[Hashable, SnapshotValue]:
        """Return the latest persisted value per entity of ``kind``.

        Args:
            kind: Entity kind.
            ids:  Restrict to these team/user ids.  For ``USER_ACTIVITY`` the
                  ids are user ids and the result is keyed by
                  ``(user_id, activity_id)``.  None reads every entity.
        """

    @abstractmethod
    async def write_deltas(
        self,
        kind: SnapshotKind,
        timestamp: datetime,
        entities: list[RankingEntry] | list[TeamMember] | list[UserActivity],
    ) -> WriteResult:
        """Insert the changed entities in one transaction.  Empty input is a no-op."""
