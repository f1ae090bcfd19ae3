"""Credential lifecycle for outbound platform calls.

Three pieces:

    CredentialStore   — owns the one Credential of the process; logs in the
                        first time, refreshes when the access token is close
                        to expiry, otherwise hands back what it holds.
    CredentialGate    — single-flight wrapper: concurrent ``acquire()`` calls
                        share one in-flight store operation.
    TokenValidator    — checks an inbound bearer token by asking the
                        platform whether it can see our own subject with it.

Every platform call made by a sync cycle obtains its bearer token through
``CredentialGate.acquire()``; that is the only mutation point for the
credential.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from src.leaderboard.base import ChallengePlatform, Credential, utc_now
from src.leaderboard.errors import CredentialError, SyncError, ValidationError
from src.leaderboard.tokens import parse_token_claims, strip_bearer

logger = logging.getLogger("squadboard.leaderboard.credentials")

DEFAULT_REFRESH_MARGIN_SECONDS = 300


class CredentialStore:
    """Hold and renew the process credential.

    Not safe to call ``obtain()`` concurrently on its own: two overlapping
    calls would both log in.  Go through ``CredentialGate``.
    """

    def __init__(
        self,
        platform: ChallengePlatform,
        email: str,
        password: str,
        refresh_margin_seconds: float = DEFAULT_REFRESH_MARGIN_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._platform = platform
        self._email = email
        self._password = password
        self._refresh_margin_seconds = refresh_margin_seconds
        self._clock = clock
        self._credential: Credential | None = None

    @property
    def current(self) -> Credential | None:
        """The held credential, or None before the first login."""
        return self._credential

    @property
    def subject_user_id(self) -> str | None:
        return self._credential.subject_user_id if self._credential else None

    async def obtain(self) -> Credential:
        """Return a usable credential, logging in or refreshing as needed.

        Raises:
            CredentialError: If login or refresh fails.
        """
        held = self._credential
        if held is None:
            return await self._login()

        if held.expires_within(self._refresh_margin_seconds, now=self._clock()):
            return await self._refresh(held)

        return held

    async def _login(self) -> Credential:
        logger.info("No credential held yet, logging in")
        try:
            result = await self._platform.login(self._email, self._password)
            claims = parse_token_claims(result.access_token)
        except SyncError as exc:
            raise CredentialError(f"Login failed: {exc}") from exc

        credential = Credential(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            subject_user_id=result.subject_user_id,
            access_token_expiry=claims.expires_at,
        )
        self._credential = credential
        logger.info("Login success, user id: %s", credential.subject_user_id)
        return credential

    async def _refresh(self, held: Credential) -> Credential:
        logger.info(
            "Access token expires at %s, refreshing",
            held.access_token_expiry.isoformat(),
        )
        try:
            pair = await self._platform.refresh(held.access_token, held.refresh_token)
            claims = parse_token_claims(pair.access_token)
        except SyncError as exc:
            raise CredentialError(f"Token refresh failed: {exc}") from exc

        credential = Credential(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            subject_user_id=held.subject_user_id,
            access_token_expiry=claims.expires_at,
        )
        self._credential = credential
        logger.info("Token refresh success")
        return credential


class CredentialGate:
    """Coalesce concurrent credential acquisitions into one operation.

    The first caller starts ``CredentialStore.obtain()`` as a task; everyone
    arriving while it runs awaits that same task and receives the identical
    result (or exception).  The in-flight marker is cleared when the task
    settles either way, so the next call after a failure starts afresh.
    There is no retry here; the next scheduled cycle is the retry.

    Usage::

        gate = CredentialGate(CredentialStore(platform, email, password))
        credential = await gate.acquire()
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store
        self._in_flight: asyncio.Task[Credential] | None = None

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    async def acquire(self) -> Credential:
        """Return a usable credential, sharing any acquisition already running.

        Raises:
            CredentialError: If the shared login/refresh failed.
        """
        task = self._in_flight
        if task is None:
            task = asyncio.ensure_future(self._store.obtain())
            task.add_done_callback(self._settled)
            self._in_flight = task
        # A cancelled caller must not cancel the acquisition other callers share
        return await asyncio.shield(task)

    def _settled(self, task: asyncio.Task[Credential]) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Credential acquisition failed: %s", task.exception())


class TokenValidator:
    """Decide whether an inbound bearer token belongs to our session.

    A token passes when it is a well-formed, unexpired JWT *and* the platform,
    queried with that token, resolves our own subject id to the same id.
    The platform is the source of truth; no signature is checked locally.
    """

    def __init__(
        self,
        gate: CredentialGate,
        platform: ChallengePlatform,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._gate = gate
        self._platform = platform
        self._clock = clock

    @property
    def subject_user_id(self) -> str | None:
        """Our own platform user id, once the first login has happened."""
        return self._gate.store.subject_user_id

    async def is_valid(self, authorization: str | None) -> bool:
        """Return True if ``authorization`` ("Bearer <jwt>") should be accepted.

        Never raises; every failure is a rejection.
        """
        try:
            token = strip_bearer(authorization)
            claims = parse_token_claims(token)
        except ValidationError as exc:
            logger.debug("Rejected inbound token: %s", exc)
            return False

        if claims.is_expired(now=self._clock()):
            logger.debug("Rejected inbound token: expired at %s", claims.expires_at)
            return False

        # Our own subject id is only known once we have logged in
        try:
            credential = await self._gate.acquire()
        except SyncError as exc:
            logger.warning("Cannot validate inbound token without a credential: %s", exc)
            return False

        try:
            identity = await self._platform.lookup_identity(
                token, credential.subject_user_id
            )
        except SyncError as exc:
            logger.debug("Rejected inbound token: identity lookup failed: %s", exc)
            return False

        return identity.id == credential.subject_user_id
