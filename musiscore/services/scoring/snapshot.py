"""
MUSISCORE - Weekly Baseline Freeze

Opens a new scoring week by copying every cached artist's current metrics
into weekly_snapshots. The daily scoring job measures all gains against
these rows, so they are never updated once written.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from musiscore.core.config import settings
from musiscore.services.scoring.types import BaselineSnapshot

logger = logging.getLogger(__name__)


@dataclass
class FreezeResult:
    week_number: int
    artists_cached: int = 0
    inserted: int = 0

    @property
    def message(self) -> str:
        if not self.artists_cached:
            return "No artists found in cache. Skipping snapshot."
        if not self.inserted:
            return f"No new artists to snapshot for Week {self.week_number}."
        return f"Snapshot created for Week {self.week_number} ({self.inserted} new artists)"


def start_of_week(moment: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing moment."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    monday = moment - timedelta(days=moment.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


async def resolve_target_week(store, now: datetime) -> int:
    """
    Week the freeze writes to.

    Normally latest + 1 (or 1 on an empty table). When the latest week was
    already opened during the current calendar week, the freeze fills that
    week in instead of opening another one.
    """
    latest = await store.get_latest_week()
    if latest is None:
        return 1

    opened_at = await store.get_week_opened_at(latest)
    if opened_at is not None:
        if opened_at.tzinfo is None:
            opened_at = opened_at.replace(tzinfo=timezone.utc)
        if opened_at >= start_of_week(now):
            return latest
    return latest + 1


async def freeze_week(store, now: datetime, batch_size: Optional[int] = None) -> FreezeResult:
    """Insert a baseline for every cached artist missing from the target week."""
    batch_size = batch_size or settings.SNAPSHOT_BATCH_SIZE
    week_number = await resolve_target_week(store, now)
    result = FreezeResult(week_number=week_number)

    logger.info(f"[Snapshot] Performing weekly snapshot for Week {week_number}")

    artists = await store.list_cached_artists()
    result.artists_cached = len(artists)
    if not artists:
        logger.warning("[Snapshot] Artist cache is empty")
        return result

    existing = await store.list_snapshot_artist_ids(week_number)
    snapshots: List[BaselineSnapshot] = [
        BaselineSnapshot(
            week_number=week_number,
            artist_id=artist.artist_id,
            popularity=artist.popularity,
            followers=artist.followers,
            created_at=now,
        )
        for artist in artists
        if artist.artist_id not in existing
    ]

    for start in range(0, len(snapshots), batch_size):
        result.inserted += await store.insert_snapshots(snapshots[start:start + batch_size])

    logger.info(f"[Snapshot] {result.message}")
    return result
