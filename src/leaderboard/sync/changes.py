"""Change detection against the last persisted snapshot.

An observed entity is *changed* when its snapshot key has no prior value,
or when any of its tracked numeric fields differs from the stored one.
Equality is exact; there is no tolerance.

Keys and tracked fields come from the entity types themselves:

    RankingEntry  — key: team id,                   tracked: points
    TeamMember    — key: user id,                   tracked: points
    UserActivity  — key: (user id, activity id),    tracked: points, value
"""

from __future__ import annotations

import logging
from typing import ClassVar, Hashable, Iterable, Protocol, TypeVar

from src.leaderboard.base import Snapshot, SnapshotValue

logger = logging.getLogger("squadboard.sync.changes")


class Observed(Protocol):
    tracked_fields: ClassVar[tuple[str, ...]]

    @property
    def snapshot_key(self) -> Hashable: ...


E = TypeVar("E", bound=Observed)


def has_undefined_value(entity: Observed) -> bool:
    """True if any tracked field of ``entity`` is missing from the response."""
    return any(getattr(entity, name) is None for name in entity.tracked_fields)


def differs_from(entity: Observed, last: SnapshotValue | None) -> bool:
    """True if ``entity`` has no prior value or any tracked field changed."""
    if last is None:
        return True
    return any(
        getattr(entity, name) != getattr(last, name) for name in entity.tracked_fields
    )


def detect_changes(observed: Iterable[E], last_snapshot: Snapshot) -> list[E]:
    """Return the observed entities whose values changed since the snapshot.

    Pure function of its inputs.  Input order is preserved.  Entities with
    an undefined tracked value are dropped rather than reported as a change.
    Duplicate keys within one batch are not collapsed.

    Args:
        observed:      Entities from this cycle.
        last_snapshot: Mapping of snapshot key → last persisted value.

    Returns:
        The changed subset, in input order.
    """
    changed: list[E] = []
    for entity in observed:
        if has_undefined_value(entity):
            continue
        if differs_from(entity, last_snapshot.get(entity.snapshot_key)):
            changed.append(entity)
    return changed

