"""Paginated reader for the season ranking feed.

The feed is cursor-paginated: the first page is requested without a cursor,
each following page with the id of the last element seen.  A page that
yields no cursor (empty, or last element without an id) ends the sequence.

Usage::

    async for entry in iter_ranking_entries(platform, gate):
        ...

    entries = await collect_ranking(platform, gate)
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from src.leaderboard.base import ChallengePlatform, RankingEntry
from src.leaderboard.credentials import CredentialGate

logger = logging.getLogger("squadboard.sync.ranking")


async def iter_ranking_entries(
    platform: ChallengePlatform,
    gate: CredentialGate,
    max_pages: int | None = None,
) -> AsyncIterator[RankingEntry]:
    """Yield every ranking entry of the current season, page by page.

    Pages are fetched strictly in cursor order.  The sequence is single-use;
    build a new one for each cycle.  A credential is acquired before every
    page so a long walk survives an access-token rollover.

    Args:
        platform:  Platform adapter.
        gate:      Credential gate for bearer tokens.
        max_pages: Stop after this many pages even if a cursor remains.
                   None means no cap.

    Yields:
        RankingEntry in feed order.

    Raises:
        CredentialError, SyncError: Propagated from the gate or the platform.
    """
    credential = await gate.acquire()
    page = await platform.get_ranking_page(credential.access_token)
    pages_read = 1
    logger.info("[Teams] Found initial teams: %d", len(page.elements))

    for entry in page.elements:
        yield entry
    cursor = page.cursor

    while cursor:
        if max_pages is not None and pages_read >= max_pages:
            logger.warning(
                "[Teams] Page cap of %d reached with cursor %s still open; "
                "ending ranking walk early",
                max_pages, cursor,
            )
            return

        credential = await gate.acquire()
        logger.debug("[Teams] Fetching continuation, offset: %s", cursor)
        page = await platform.get_ranking_page(credential.access_token, cursor=cursor)
        pages_read += 1
        logger.info(
            "[Teams] Found more teams: %d, offset: %s", len(page.elements), cursor
        )

        for entry in page.elements:
            yield entry
        cursor = page.cursor


async def collect_ranking(
    platform: ChallengePlatform,
    gate: CredentialGate,
    max_pages: int | None = None,
) -> list[RankingEntry]:
    """Drain the whole ranking into memory.

    Ranking sizes are bounded by the platform, so change detection works on
    the complete list rather than streaming.
    """
    return [
        entry async for entry in iter_ranking_entries(platform, gate, max_pages=max_pages)
    ]
