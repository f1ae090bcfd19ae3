"""Challenge window gate: should this sync cycle run at all?"""

from __future__ import annotations

import logging
from datetime import datetime

from src.leaderboard.base import ChallengePlatform, ChallengeWindow, Credential, utc_now

logger = logging.getLogger("squadboard.leaderboard.challenge")


def window_contains(window: ChallengeWindow, now: datetime) -> bool:
    """Return True iff ``now`` lies in ``[start_at, end_at)``.

    A window missing either bound is never active.
    """
    if window.start_at is None or window.end_at is None:
        return False
    return window.start_at <= now < window.end_at


async def is_challenge_active(
    platform: ChallengePlatform,
    credential: Credential,
    now: datetime | None = None,
) -> bool:
    """Fetch the challenge metadata and check it against the current time.

    Queried once per cycle; nothing is cached.
    """
    window = await platform.get_challenge(credential.access_token)
    now = now or utc_now()
    active = window_contains(window, now)
    if not active:
        logger.debug(
            "Challenge window %s → %s does not contain %s",
            window.start_at, window.end_at, now.isoformat(),
        )
    return active
