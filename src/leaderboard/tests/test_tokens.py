"""Tests for access-token claim parsing and Authorization header handling."""

from __future__ import annotations

from datetime import timedelta, timezone

import jwt as pyjwt
import pytest

from src.leaderboard.errors import ValidationError
from src.leaderboard.tests.conftest import TEST_NOW, TEST_USER_ID, make_jwt
from src.leaderboard.tokens import parse_token_claims, strip_bearer


class TestParseTokenClaims:
    def test_reads_subject_and_expiry(self) -> None:
        claims = parse_token_claims(make_jwt("user-42", TEST_NOW + timedelta(minutes=30)))
        assert claims.subject_id == "user-42"
        assert claims.expires_at == TEST_NOW + timedelta(minutes=30)
        assert claims.expires_at.tzinfo is timezone.utc

    def test_expired_token_still_parses(self) -> None:
        """Expiry is reported, not enforced, by the parser."""
        claims = parse_token_claims(make_jwt(expires_at=TEST_NOW - timedelta(days=2)))
        assert claims.is_expired(now=TEST_NOW)

    def test_unexpired_token(self) -> None:
        claims = parse_token_claims(make_jwt(expires_at=TEST_NOW + timedelta(seconds=1)))
        assert not claims.is_expired(now=TEST_NOW)

    def test_signature_is_not_checked(self) -> None:
        token = pyjwt.encode(
            {"id": TEST_USER_ID, "exp": int(TEST_NOW.timestamp())},
            "some-other-key",
            algorithm="HS256",
        )
        assert parse_token_claims(token).subject_id == TEST_USER_ID

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", "Bearer x.y.z"])
    def test_malformed_token_raises(self, token: str) -> None:
        with pytest.raises(ValidationError):
            parse_token_claims(token)

    def test_missing_exp_raises(self) -> None:
        token = pyjwt.encode({"id": TEST_USER_ID}, "k", algorithm="HS256")
        with pytest.raises(ValidationError, match="exp"):
            parse_token_claims(token)

    def test_missing_id_raises(self) -> None:
        token = pyjwt.encode({"exp": int(TEST_NOW.timestamp())}, "k", algorithm="HS256")
        with pytest.raises(ValidationError, match="id"):
            parse_token_claims(token)


class TestStripBearer:
    def test_strips_prefix(self) -> None:
        assert strip_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, "", "abc.def.ghi", "Basic dXNlcg==", "Bearer "])
    def test_rejects_missing_or_wrong_scheme(self, header: str | None) -> None:
        with pytest.raises(ValidationError):
            strip_bearer(header)
