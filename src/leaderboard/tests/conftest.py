"""Shared fixtures, fakes and token helpers for leaderboard sync tests."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Hashable

import jwt as pyjwt
import pytest

from src.leaderboard.base import (
    ChallengePlatform,
    ChallengeWindow,
    Identity,
    LoginResult,
    RankingEntry,
    RankingPage,
    SnapshotKind,
    SnapshotStore,
    SnapshotValue,
    TeamMember,
    TeamRoster,
    TokenPair,
    UserActivities,
    UserActivity,
    WriteResult,
)
from src.leaderboard.config_loader import SyncConfig, load_sync_config
from src.leaderboard.errors import NotFoundError

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Canonical test account
TEST_USER_ID = "user-self"
TEST_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_jwt(
    subject: str = TEST_USER_ID, expires_at: datetime | None = None, **claims: Any
) -> str:
    """Build a token shaped like the platform's (``id`` + ``exp`` claims)."""
    expires_at = expires_at or TEST_NOW + timedelta(hours=1)
    return pyjwt.encode(
        {"id": subject, "exp": int(expires_at.timestamp()), **claims},
        "test-signing-key",
        algorithm="HS256",
    )


class FakeClock:
    """Settable clock for code that takes a ``clock`` callable."""

    def __init__(self, now: datetime = TEST_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakePlatform(ChallengePlatform):
    """In-memory platform recording every call.

    Tokens it issues expire ``token_ttl`` after ``clock()``.  ``delay``
    makes login/refresh yield to the loop so concurrent callers can pile up.
    """

    DISPLAY_NAME = "Fake"

    def __init__(
        self,
        clock: FakeClock | None = None,
        token_ttl: timedelta = timedelta(hours=1),
        delay: float = 0.0,
    ) -> None:
        self.clock = clock or FakeClock()
        self.token_ttl = token_ttl
        self.delay = delay
        self.calls: list[tuple[str, Any]] = []

        self.window = ChallengeWindow(
            start_at=TEST_NOW - timedelta(days=1), end_at=TEST_NOW + timedelta(days=1)
        )
        # a plain list becomes a page whose cursor is its last id
        self.ranking_pages: list[list[RankingEntry] | RankingPage] = [[]]
        self.rosters: dict[str, list[TeamMember]] = {}
        self.activities: dict[str, list[UserActivity]] = {}
        self.identities: dict[str, str] = {}  # token → id it resolves our subject to
        self.login_error: Exception | None = None
        self.roster_errors: dict[str, Exception] = {}
        self._issued = 0

    def _issue(self) -> str:
        self._issued += 1
        # "n" only makes successive tokens distinct
        return make_jwt(TEST_USER_ID, self.clock() + self.token_ttl, n=self._issued)

    def calls_to(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]

    async def login(self, email: str, password: str) -> LoginResult:
        self.calls.append(("login", email))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.login_error is not None:
            raise self.login_error
        return LoginResult(
            access_token=self._issue(),
            refresh_token=f"refresh-{self._issued}",
            subject_user_id=TEST_USER_ID,
        )

    async def refresh(self, access_token: str, refresh_token: str) -> TokenPair:
        self.calls.append(("refresh", refresh_token))
        if self.delay:
            await asyncio.sleep(self.delay)
        return TokenPair(
            access_token=self._issue(),
            refresh_token=f"refresh-{self._issued}",
        )

    async def lookup_identity(self, bearer_token: str, user_id: str) -> Identity:
        self.calls.append(("lookup_identity", user_id))
        if bearer_token not in self.identities:
            raise NotFoundError(f"users/{user_id} not found")
        return Identity(id=self.identities[bearer_token])

    async def get_challenge(self, bearer_token: str) -> ChallengeWindow:
        self.calls.append(("get_challenge", None))
        return self.window

    async def get_ranking_page(
        self, bearer_token: str, cursor: str | None = None
    ) -> RankingPage:
        self.calls.append(("get_ranking_page", cursor))
        index = len(self.calls_to("get_ranking_page")) - 1
        page = self.ranking_pages[index] if index < len(self.ranking_pages) else []
        if isinstance(page, RankingPage):
            return page
        return RankingPage(
            elements=list(page), cursor=page[-1].entity_id if page else None
        )

    async def get_team_roster(self, bearer_token: str, team_id: str) -> TeamRoster:
        self.calls.append(("get_team_roster", team_id))
        await asyncio.sleep(0)
        if team_id in self.roster_errors:
            raise self.roster_errors[team_id]
        return TeamRoster(team_id=team_id, members=self.rosters.get(team_id, []))

    async def get_user_activities(
        self, bearer_token: str, user_id: str
    ) -> UserActivities:
        self.calls.append(("get_user_activities", user_id))
        await asyncio.sleep(0)
        return UserActivities(user_id=user_id, activities=self.activities.get(user_id, []))


class InMemoryStore(SnapshotStore):
    """SnapshotStore keeping rows in lists; records every write."""

    def __init__(self) -> None:
        self.rows: dict[SnapshotKind, list[tuple[datetime, Any]]] = {
            kind: [] for kind in SnapshotKind
        }
        self.writes: list[tuple[SnapshotKind, datetime, list[Any]]] = []
        self.reads: list[tuple[SnapshotKind, list[str] | None]] = []

    def seed(self, kind: SnapshotKind, timestamp: datetime, entities: list[Any]) -> None:
        self.rows[kind].extend((timestamp, e) for e in entities)

    def writes_of(self, kind: SnapshotKind) -> list[list[Any]]:
        return [entities for k, _, entities in self.writes if k is kind]

    async def read_last_snapshot(
        self, kind: SnapshotKind, ids: list[str] | None = None
    ) -> dict[Hashable, SnapshotValue]:
        self.reads.append((kind, ids))
        snapshot: dict[Hashable, SnapshotValue] = {}
        for timestamp, entity in sorted(self.rows[kind], key=lambda row: row[0]):
            owner = entity.user_id if kind is not SnapshotKind.TEAM else entity.entity_id
            if ids is not None and owner not in ids:
                continue
            snapshot[entity.snapshot_key] = SnapshotValue(
                points=entity.points,
                value=getattr(entity, "value", None),
                time=timestamp,
            )
        return snapshot

    async def write_deltas(
        self, kind: SnapshotKind, timestamp: datetime, entities: list[Any]
    ) -> WriteResult:
        if not entities:
            return WriteResult(kind=kind)
        self.writes.append((kind, timestamp, list(entities)))
        self.rows[kind].extend((timestamp, e) for e in entities)
        return WriteResult(kind=kind, written=len(entities))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the real sync config for tests."""
    return load_sync_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def platform(clock: FakeClock) -> FakePlatform:
    return FakePlatform(clock=clock)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ranking_page_raw() -> dict:
    return json.loads((FIXTURES_DIR / "ranking_page.json").read_text())


@pytest.fixture
def team_raw() -> dict:
    return json.loads((FIXTURES_DIR / "team.json").read_text())


@pytest.fixture
def user_statistics_raw() -> dict:
    return json.loads((FIXTURES_DIR / "user_statistics.json").read_text())
