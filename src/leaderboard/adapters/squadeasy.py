"""SquadEasy challenge platform adapter.

Thin httpx binding: one method per remote call, responses parsed into the
canonical models of ``src.leaderboard.base``, HTTP failures mapped to the
``src.leaderboard.errors`` taxonomy.  No retries at this layer.

API base: https://api-challenge.squadeasy.com

Endpoints used:
    POST /api/3.0/auth/login                 — email/password login
    POST /api/3.0/auth/refresh-token         — token pair refresh
    GET  /api/2.0/my/user                    — our own user (subject id)
    GET  /api/2.0/users/{id}                 — identity lookup
    GET  /api/3.0/my/challenge               — challenge window
    GET  /api/3.0/ranking/{type}/{seasonId}  — season team ranking (paged)
    GET  /api/2.0/teams/{id}                 — team roster
    GET  /api/2.0/users/{id}/statistics      — per-activity statistics
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from src.leaderboard.base import (
    ChallengePlatform,
    ChallengeWindow,
    Identity,
    LoginResult,
    RankingEntry,
    RankingPage,
    TeamMember,
    TeamRoster,
    TokenPair,
    UserActivities,
    UserActivity,
)
from src.leaderboard.errors import AuthError, NotFoundError, TransientNetworkError

logger = logging.getLogger("squadboard.leaderboard.squadeasy")

DEFAULT_BASE_URL = "https://api-challenge.squadeasy.com"

#: Query parameter carrying the continuation cursor on ranking pages.
RANKING_CURSOR_PARAM = "below"


class SquadEasyAdapter(ChallengePlatform):
    """SquadEasy REST adapter.

    Args:
        base_url:        API root.
        ranking_type:    ``{type}`` path segment of the ranking endpoint.
        season_id:       ``{seasonId}`` path segment of the ranking endpoint.
        timeout_seconds: Per-request timeout for the owned client.
        http_client:     Optional pre-configured httpx client (for testing).
                         When given, the adapter does not close it.
    """

    DISPLAY_NAME = "SquadEasy"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        ranking_type: str = "a",
        season_id: str = "a",
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._ranking_type = ranking_type
        self._season_id = season_id
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # ChallengePlatform interface
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginResult:
        """Log in, then fetch ``/my/user`` with the new token for our user id."""
        tokens = await self._request(
            "POST", "/api/3.0/auth/login", json={"email": email, "password": password}
        )
        access_token = self._require_str(tokens, "accessToken", "login")
        refresh_token = self._require_str(tokens, "refreshToken", "login")

        my_user = await self._request("GET", "/api/2.0/my/user", token=access_token)
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            subject_user_id=self._require_str(my_user, "id", "my/user"),
        )

    async def refresh(self, access_token: str, refresh_token: str) -> TokenPair:
        data = await self._request(
            "POST",
            "/api/3.0/auth/refresh-token",
            token=access_token,
            headers={"Refresh-Token": refresh_token},
        )
        return TokenPair(
            access_token=self._require_str(data, "accessToken", "refresh-token"),
            refresh_token=self._require_str(data, "refreshToken", "refresh-token"),
        )

    async def lookup_identity(self, bearer_token: str, user_id: str) -> Identity:
        data = self._require_dict(
            await self._request("GET", f"/api/2.0/users/{user_id}", token=bearer_token),
            "users/{id}",
        )
        return Identity(
            id=self._require_str(data, "id", "users/{id}"),
            display_name=data.get("firstName"),
        )

    async def get_challenge(self, bearer_token: str) -> ChallengeWindow:
        data = self._require_dict(
            await self._request("GET", "/api/3.0/my/challenge", token=bearer_token),
            "my/challenge",
        )
        return ChallengeWindow(
            start_at=_parse_iso_datetime(data.get("startAt")),
            end_at=_parse_iso_datetime(data.get("endAt")),
        )

    async def get_ranking_page(
        self, bearer_token: str, cursor: str | None = None
    ) -> RankingPage:
        """Fetch the first ranking page, or the page below ``cursor``.

        The continuation call answers either ``{"elements": [...]}`` or a
        bare list of elements; both are accepted.

        The page cursor is the id of the last *raw* element.  A last element
        without an id is dropped from ``elements`` and leaves the cursor
        unset, which ends the walk.
        """
        params = {RANKING_CURSOR_PARAM: cursor} if cursor else None
        data = await self._request(
            "GET",
            f"/api/3.0/ranking/{self._ranking_type}/{self._season_id}",
            token=bearer_token,
            params=params,
        )
        if isinstance(data, list):
            raw_elements = data
        else:
            body = self._require_dict(data, "ranking")
            raw_elements = self._require_list(body.get("elements"), "elements", "ranking")

        elements: list[RankingEntry] = []
        last_id: str | None = None
        for raw in raw_elements:
            team_id = raw.get("id") if isinstance(raw, dict) else None
            last_id = str(team_id) if team_id else None
            if last_id is None:
                logger.warning("Dropping ranking element without id: %r", raw)
                continue
            elements.append(
                RankingEntry(entity_id=last_id, points=_safe_int(raw.get("points")))
            )
        return RankingPage(elements=elements, cursor=last_id)

    async def get_team_roster(self, bearer_token: str, team_id: str) -> TeamRoster:
        data = self._require_dict(
            await self._request("GET", f"/api/2.0/teams/{team_id}", token=bearer_token),
            "teams/{id}",
        )
        members = [
            TeamMember(
                user_id=str(user["id"]),
                points=_safe_int(user.get("points")),
                activity_visible=bool(user.get("isActivityPublic")),
            )
            for user in self._require_list(data.get("users"), "users", "teams/{id}")
            if isinstance(user, dict) and user.get("id")
        ]
        return TeamRoster(team_id=team_id, members=members)

    async def get_user_activities(
        self, bearer_token: str, user_id: str
    ) -> UserActivities:
        data = self._require_dict(
            await self._request(
                "GET", f"/api/2.0/users/{user_id}/statistics", token=bearer_token
            ),
            "users/{id}/statistics",
        )
        owner = str(data.get("id") or user_id)
        activities = [
            UserActivity(
                user_id=owner,
                activity_id=str(item["activityId"]),
                value=_safe_float(item.get("value")),
                points=_safe_int(item.get("points")),
            )
            for item in self._require_list(
                data.get("activities"), "activities", "users/{id}/statistics"
            )
            if isinstance(item, dict) and item.get("activityId")
        ]
        return UserActivities(user_id=owner, activities=activities)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _build_headers(
        self, token: str | None, extra: dict[str, str] | None = None
    ) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a request to the platform and return the decoded JSON body.

        Raises:
            AuthError:             On 401/403.
            NotFoundError:         On 404.
            TransientNetworkError: On transport errors, other non-2xx
                                   statuses, or a body that is not JSON.
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(
                method, url, headers=self._build_headers(token, headers), **kwargs
            )
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthError(f"{method} {path} rejected with {status}")
        if status == 404:
            raise NotFoundError(f"{method} {path} not found")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransientNetworkError(
                f"{method} {path} failed with {status}", status_code=status
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise TransientNetworkError(f"{method} {path} returned invalid JSON") from exc

    @staticmethod
    def _require_dict(data: Any, endpoint: str) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise TransientNetworkError(
                f"{endpoint} response is not an object: {type(data).__name__}"
            )
        return data

    @staticmethod
    def _require_list(value: Any, key: str, endpoint: str) -> list[Any]:
        """A missing list is empty; any other non-list value is a bad response."""
        if value is None:
            return []
        if not isinstance(value, list):
            raise TransientNetworkError(f"{endpoint} response '{key}' is not a list")
        return value

    @staticmethod
    def _require_str(data: Any, key: str, endpoint: str) -> str:
        value = data.get(key) if isinstance(data, dict) else None
        if not isinstance(value, str) or not value:
            raise TransientNetworkError(f"{endpoint} response has no '{key}'")
        return value


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _safe_int(value: object) -> int | None:
    """Safely coerce a value to int, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_float(value: object) -> float | None:
    """Safely coerce a value to float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string to an aware UTC datetime.

    Naive strings are taken as UTC.  Returns None if missing or unparseable.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        logger.warning("Could not parse datetime string: %r", value)
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
