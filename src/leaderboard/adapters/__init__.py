"""Challenge platform adapters.

Each adapter implements the ChallengePlatform ABC and handles:
- Login and token refresh against the platform's auth endpoints
- Challenge metadata, ranking pages, team rosters and user statistics
- Mapping HTTP failures onto the sync error taxonomy

Available adapters:
    SquadEasyAdapter — SquadEasy challenge API
"""

from src.leaderboard.adapters.squadeasy import SquadEasyAdapter

__all__ = ["SquadEasyAdapter"]
