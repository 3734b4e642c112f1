"""
MUSISCORE - Job Pipelines

    daily-scores        score the current week, settle bets, accrue ledger
    weekly-leaderboard  archive standings, pay rewards, reset scores
    weekly-snapshot     freeze the next week's baseline
"""

from musiscore.pipeline.runner import JOBS, run_job
from musiscore.pipeline.summary import JobSummary

__all__ = ["JOBS", "run_job", "JobSummary"]
