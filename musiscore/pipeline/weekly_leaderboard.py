"""
MUSISCORE - Weekly Leaderboard Pipeline

Closes the latest snapshot week: archives standings, pays tier rewards and
resets running scores. Scheduled right after the last daily scoring run of
the week.

Usage:
    musiscore weekly-leaderboard
"""

import logging
from typing import Optional

from musiscore.core.config import Settings, settings as default_settings
from musiscore.pipeline.summary import JobSummary
from musiscore.services.scoring.rollover import run_rollover
from musiscore.services.store.scoring_store import ScoringStore

logger = logging.getLogger(__name__)

JOB_NAME = "weekly-leaderboard"


async def run_weekly_leaderboard(
    store: ScoringStore,
    config: Optional[Settings] = None,
) -> JobSummary:
    config = config or default_settings

    week_number = await store.get_latest_week() or 1
    logger.info(f"[WeeklyLeaderboard] Closing Week {week_number}")

    result = await run_rollover(store, week_number, config.HISTORY_BATCH_SIZE)
    if result.participants == 0:
        return JobSummary.skipped(JOB_NAME, "No active players found. Skipping.")

    return JobSummary.completed(
        JOB_NAME,
        result.message,
        week_number=week_number,
        participants=result.participants,
        history_written=result.history_written,
        coins_credited=result.coins_credited,
        profiles_reset=result.profiles_reset,
    )
