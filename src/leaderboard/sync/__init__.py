"""Leaderboard sync pipeline.

Modules:
    ranking    — Cursor-paginated ranking reader
    changes    — Change detection against the last persisted snapshot
    enrichment — Fan-out of roster and activity fetches for changed teams
    engine     — One sync cycle, end to end
    scheduler  — Fixed-interval cycle scheduler
    tasks      — Supervisor for detached tasks
"""
