"""Tests for the challenge window gate."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.leaderboard.base import ChallengeWindow, Credential
from src.leaderboard.challenge import is_challenge_active, window_contains
from src.leaderboard.tests.conftest import TEST_NOW, TEST_USER_ID, FakePlatform

HOUR = timedelta(hours=1)


class TestWindowContains:
    def test_inside_window(self) -> None:
        window = ChallengeWindow(start_at=TEST_NOW - HOUR, end_at=TEST_NOW + HOUR)
        assert window_contains(window, TEST_NOW)

    def test_not_started_yet(self) -> None:
        window = ChallengeWindow(start_at=TEST_NOW + HOUR, end_at=TEST_NOW + 2 * HOUR)
        assert not window_contains(window, TEST_NOW)

    def test_already_ended(self) -> None:
        window = ChallengeWindow(start_at=TEST_NOW - 2 * HOUR, end_at=TEST_NOW - HOUR)
        assert not window_contains(window, TEST_NOW)

    @pytest.mark.parametrize(
        "window",
        [
            ChallengeWindow(start_at=None, end_at=TEST_NOW + HOUR),
            ChallengeWindow(start_at=TEST_NOW - HOUR, end_at=None),
            ChallengeWindow(),
        ],
    )
    def test_missing_bound_is_inactive(self, window: ChallengeWindow) -> None:
        assert not window_contains(window, TEST_NOW)

    def test_start_is_inclusive_end_is_exclusive(self) -> None:
        window = ChallengeWindow(start_at=TEST_NOW, end_at=TEST_NOW + HOUR)
        assert window_contains(window, TEST_NOW)
        assert not window_contains(window, TEST_NOW + HOUR)


class TestIsChallengeActive:
    @pytest.mark.asyncio
    async def test_queries_platform_each_time(self, platform: FakePlatform) -> None:
        credential = Credential("access", "refresh", TEST_USER_ID, TEST_NOW + HOUR)

        assert await is_challenge_active(platform, credential, now=TEST_NOW)
        platform.window = ChallengeWindow(start_at=TEST_NOW - 2 * HOUR, end_at=TEST_NOW)
        assert not await is_challenge_active(platform, credential, now=TEST_NOW)

        assert len(platform.calls_to("get_challenge")) == 2
