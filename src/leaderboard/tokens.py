"""Claim parsing for the platform's self-describing access tokens.

The platform issues JWTs whose payload carries the subject (``id``) and an
expiry (``exp``, epoch seconds).  We never hold the signing key, so the
signature is not verified here: the platform itself is the authority on
whether a token is still good.  We only read the claims to decide when to
refresh and to reject obviously expired inbound tokens early.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import jwt as pyjwt

from src.leaderboard.errors import ValidationError

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at < now


def parse_token_claims(token: str) -> TokenClaims:
    """Decode the unverified payload of an access token.

    Args:
        token: Raw JWT (no ``Bearer`` prefix).

    Returns:
        TokenClaims with subject id and UTC expiry.

    Raises:
        ValidationError: If the token is not a JWT or lacks a numeric ``exp``
            or a string ``id`` claim.
    """
    try:
        payload = pyjwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except pyjwt.InvalidTokenError as exc:
        raise ValidationError(f"Malformed token: {exc}") from exc

    exp = payload.get("exp")
    subject = payload.get("id")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise ValidationError("Token has no numeric 'exp' claim")
    if not isinstance(subject, str):
        raise ValidationError("Token has no string 'id' claim")

    return TokenClaims(
        subject_id=subject,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    )


def strip_bearer(header_value: str | None) -> str:
    """Return the raw token from an ``Authorization`` header value.

    Raises:
        ValidationError: If the header is missing or lacks the Bearer prefix.
    """
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        raise ValidationError("Missing or invalid Authorization header")
    token = header_value.removeprefix(BEARER_PREFIX).strip()
    if not token:
        raise ValidationError("Empty bearer token")
    return token
