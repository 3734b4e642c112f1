"""
MUSISCORE - Database Models
Tables read and written by the scoring engine.
"""

from musiscore.models.models import (
    # Base
    Base,

    # Enums
    BetStatus,
    BetSide,

    # Seasons & Profiles
    Season,
    Profile,

    # Artists
    ArtistCache,
    FeaturedArtist,
    WeeklySnapshot,
    WeeklyScore,

    # Rosters, Ledger & Bets
    Team,
    DailyScoreLog,
    DailyPromo,

    # Leaderboard
    LeaderboardConfig,
    WeeklyLeaderboardHistory,
)

__all__ = [
    "Base",
    "BetStatus",
    "BetSide",
    "Season",
    "Profile",
    "ArtistCache",
    "FeaturedArtist",
    "WeeklySnapshot",
    "WeeklyScore",
    "Team",
    "DailyScoreLog",
    "DailyPromo",
    "LeaderboardConfig",
    "WeeklyLeaderboardHistory",
]
