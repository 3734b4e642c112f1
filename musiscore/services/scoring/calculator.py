"""
MUSISCORE - Artist Score Calculator

Turns the difference between an artist's weekly baseline and its current
Spotify metrics into points:

    total = round(popularity_delta * 10) + round(follower_growth_%) + release_bonus

Everything here is pure: the same baseline, metrics and releases always
produce the same score, which is what makes re-running a scoring job safe.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, Optional, Set

from musiscore.core.config import Settings, settings as default_settings
from musiscore.services.scoring.types import (
    ArtistMetrics,
    BaselineSnapshot,
    PeriodScore,
    Release,
    Roster,
)

logger = logging.getLogger(__name__)

COMPILATION = "compilation"


@dataclass(frozen=True)
class ScoringRules:
    """Point constants of the scoring formula."""
    popularity_points_per_unit: int = 10
    single_bonus: int = 20
    album_bonus: int = 50
    captain_multiplier: float = 1.5
    featured_captain_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ScoringRules":
        config = config or default_settings
        return cls(
            popularity_points_per_unit=config.POPULARITY_POINTS_PER_UNIT,
            single_bonus=config.SINGLE_RELEASE_BONUS,
            album_bonus=config.ALBUM_RELEASE_BONUS,
            captain_multiplier=config.CAPTAIN_MULTIPLIER,
            featured_captain_multiplier=config.FEATURED_CAPTAIN_MULTIPLIER,
        )

    def release_points(self, album_type: str) -> int:
        kind = (album_type or "").lower()
        if kind == "single":
            return self.single_bonus
        if kind in ("album", "ep"):
            return self.album_bonus
        return 0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def _utc_date(moment: datetime) -> date:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def parse_release_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a Spotify release date.

    Spotify reports day, month or year precision; coarser values resolve to
    the first day of the month/year. Returns None when unparseable.
    """
    if not value:
        return None
    parts = value.strip().split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 else 1
        day = int(parts[2]) if len(parts) > 2 else 1
        return date(year, month, day)
    except (ValueError, IndexError):
        return None


def calculate_release_bonus(
    releases: Iterable[Release],
    window_start: datetime,
    window_end: datetime,
    rules: ScoringRules,
) -> int:
    """
    Bonus for releases dropped inside [window_start, window_end].

    Release dates only carry a day, so the window is compared by UTC
    calendar day. Compilations never count.
    """
    start_day = _utc_date(window_start)
    end_day = _utc_date(window_end)

    bonus = 0
    for release in releases:
        if (release.album_type or "").lower() == COMPILATION:
            continue
        released_on = parse_release_date(release.release_date)
        if released_on is None:
            logger.debug(f"Ignoring release {release.release_id} with date {release.release_date!r}")
            continue
        if start_day <= released_on <= end_day:
            bonus += rules.release_points(release.album_type)
    return bonus


def calculate_period_score(
    snapshot: BaselineSnapshot,
    metrics: ArtistMetrics,
    releases: Iterable[Release],
    window_end: datetime,
    rules: Optional[ScoringRules] = None,
) -> PeriodScore:
    """
    Score an artist for the snapshot's week.

    Args:
        snapshot: Frozen baseline for the week
        metrics: Current provider metrics
        releases: Recent releases of the artist
        window_end: Last moment a release may count (normally the run time)
        rules: Point constants (defaults from settings)
    """
    rules = rules or ScoringRules.from_settings()

    popularity_delta = metrics.popularity - snapshot.popularity
    start_followers = max(snapshot.followers, 1)
    growth_percent = ((metrics.followers - snapshot.followers) / start_followers) * 100
    release_bonus = calculate_release_bonus(releases, snapshot.created_at, window_end, rules)

    total_points = (
        round_half_up(popularity_delta * rules.popularity_points_per_unit)
        + round_half_up(growth_percent)
        + release_bonus
    )

    return PeriodScore(
        week_number=snapshot.week_number,
        artist_id=snapshot.artist_id,
        popularity_gain=popularity_delta,
        follower_gain_percent=growth_percent,
        release_bonus=release_bonus,
        total_points=total_points,
    )


def captain_multiplier(artist_id: str, featured_ids: Set[str], rules: ScoringRules) -> float:
    if artist_id in featured_ids:
        return rules.featured_captain_multiplier
    return rules.captain_multiplier


def roster_points(
    roster: Roster,
    scores: Dict[str, int],
    featured_ids: Set[str],
    rules: Optional[ScoringRules] = None,
) -> int:
    """
    Week total of a roster.

    Slots without a score contribute nothing. The captain's points are
    boosted (x2.0 when featured, x1.5 otherwise) and rounded half-up.
    """
    rules = rules or ScoringRules.from_settings()

    total = 0
    for artist_id in roster.artist_ids:
        points = scores.get(artist_id, 0)
        if roster.captain_id and artist_id == roster.captain_id:
            points = round_half_up(points * captain_multiplier(artist_id, featured_ids, rules))
        total += points
    return total
