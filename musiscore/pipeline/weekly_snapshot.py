"""
MUSISCORE - Weekly Snapshot Pipeline

Freezes the artist cache into the baseline of the next week. Scheduled
shortly after the weekly leaderboard.

Usage:
    musiscore weekly-snapshot
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from musiscore.core.config import Settings, settings as default_settings
from musiscore.pipeline.summary import JobSummary
from musiscore.services.scoring.snapshot import freeze_week
from musiscore.services.store.scoring_store import ScoringStore

logger = logging.getLogger(__name__)

JOB_NAME = "weekly-snapshot"


async def run_weekly_snapshot(
    store: ScoringStore,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> JobSummary:
    config = config or default_settings
    now = now or datetime.now(timezone.utc)

    season = await store.get_active_season()
    if season is None:
        return JobSummary.skipped(JOB_NAME, "No active season found. Skipping snapshot.")

    result = await freeze_week(store, now, config.SNAPSHOT_BATCH_SIZE)
    if not result.artists_cached:
        return JobSummary.skipped(JOB_NAME, result.message)

    return JobSummary.completed(
        JOB_NAME,
        result.message,
        week_number=result.week_number,
        inserted=result.inserted,
    )
