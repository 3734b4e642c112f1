"""
MUSISCORE - Fantasy Music League Scoring Engine

Batch services that keep the league standings in sync with Spotify:
- Daily artist scoring against the frozen weekly baseline
- Idempotent point accrual into manager totals
- Head-to-head promo bet resolution
- Weekly leaderboard rollover and baseline freeze
"""

__version__ = "1.0.0"
__author__ = "MUSISCORE Team"
__description__ = "Fantasy Music League Scoring Engine"


def get_version() -> str:
    """Return the current package version."""
    return __version__
