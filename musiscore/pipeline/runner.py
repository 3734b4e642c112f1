"""
MUSISCORE - Job Runner

Single entry point used by the HTTP triggers, the scheduler and the CLI.
Whatever happens inside a job, the caller gets a JobSummary back.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from musiscore.pipeline.daily_scores import run_daily_scoring
from musiscore.pipeline.summary import JobSummary
from musiscore.pipeline.weekly_leaderboard import run_weekly_leaderboard
from musiscore.pipeline.weekly_snapshot import run_weekly_snapshot
from musiscore.services.store.scoring_store import ScoringStore, SqlAlchemyScoringStore

logger = logging.getLogger(__name__)

JobFunc = Callable[..., Awaitable[JobSummary]]

JOBS: Dict[str, JobFunc] = {
    "daily-scores": run_daily_scoring,
    "weekly-leaderboard": run_weekly_leaderboard,
    "weekly-snapshot": run_weekly_snapshot,
}


async def run_job(name: str, store: Optional[ScoringStore] = None, **kwargs: Any) -> JobSummary:
    """
    Run a job by name.

    Unhandled errors are logged with traceback and returned as a failed
    summary carrying the error message.
    """
    if name not in JOBS:
        raise KeyError(f"Unknown job: {name}")

    store = store or SqlAlchemyScoringStore()
    started = time.perf_counter()
    logger.info(f"[Jobs] Starting {name}")

    try:
        summary = await JOBS[name](store, **kwargs)
    except Exception as e:
        logger.exception(f"[Jobs] {name} failed: {e}")
        return JobSummary.failed(name, str(e))

    elapsed = time.perf_counter() - started
    logger.info(f"[Jobs] {name} finished in {elapsed:.1f}s: {summary.message}")
    return summary
