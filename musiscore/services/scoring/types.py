"""
MUSISCORE - Scoring Domain Types

Plain data structures passed between the store gateway, the Spotify client
and the pure scoring components.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class ArtistMetrics:
    """Current provider metrics for one artist."""
    artist_id: str
    popularity: int
    followers: int
    name: Optional[str] = None


@dataclass
class Release:
    """An album/single as returned by the artist albums endpoint."""
    release_id: str
    name: str
    release_date: str      # YYYY, YYYY-MM or YYYY-MM-DD
    album_type: str        # album, single, compilation (ep on some feeds)


@dataclass
class BaselineSnapshot:
    """Frozen metrics for an artist at the start of a week."""
    week_number: int
    artist_id: str
    popularity: int
    followers: int
    created_at: datetime


@dataclass
class PeriodScore:
    """Points earned by an artist in a week so far."""
    week_number: int
    artist_id: str
    popularity_gain: int
    follower_gain_percent: float
    release_bonus: int
    total_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'week_number': self.week_number,
            'artist_id': self.artist_id,
            'popularity_gain': self.popularity_gain,
            'follower_gain_percent': self.follower_gain_percent,
            'release_bonus': self.release_bonus,
            'total_points': self.total_points,
        }


@dataclass
class Roster:
    """A manager's team for a week."""
    user_id: str
    week_number: int
    slots: List[Optional[str]] = field(default_factory=list)
    captain_id: Optional[str] = None

    @property
    def artist_ids(self) -> List[str]:
        """Filled slots, in slot order."""
        return [artist_id for artist_id in self.slots if artist_id]


@dataclass
class Wager:
    """An unresolved head-to-head promo bet."""
    promo_id: str
    user_id: str
    artist_id: Optional[str]
    rival_id: Optional[str]
    side: str                   # my_artist | rival | draw
    initial_my: int = 0
    initial_rival: int = 0
    week_number: Optional[int] = None
    snapshot: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WagerResolution:
    """Terminal state of a promo bet and the payout it earns."""
    promo_id: str
    user_id: str
    status: str                 # won | lost | draw
    my_delta: int
    rival_delta: int
    points_awarded: int = 0
    coins_awarded: int = 0

    def apply_to_snapshot(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of the bet snapshot carrying the resolution."""
        return {
            **snapshot,
            'status': self.status,
            'scores': {'my': self.my_delta, 'rival': self.rival_delta},
            'won_points': self.points_awarded,
            'won_coins': self.coins_awarded,
        }


@dataclass
class UserAggregate:
    """Running totals of a manager."""
    user_id: str
    total_score: int = 0
    listen_score: int = 0
    musi_coins: int = 0
    created_at: Optional[datetime] = None

    @property
    def combined_score(self) -> int:
        return self.total_score + self.listen_score


@dataclass
class AccrualEntry:
    """One ledger row to append (and the delta to apply with it)."""
    user_id: str
    week_number: int
    points_gained: int
    log_date: date


@dataclass
class LeaderboardEntry:
    """Final standing of a manager for a closed week."""
    user_id: str
    week_number: int
    rank: int
    score: int
    reward_musicoins: int = 0
