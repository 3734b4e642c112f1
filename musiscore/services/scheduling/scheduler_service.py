"""
MUSISCORE - Scheduling Service
In-process cron for the scoring jobs with APScheduler

    daily-scores         DAILY_SCORES_CRON        (default 23:30 UTC daily)
    weekly-leaderboard   WEEKLY_LEADERBOARD_CRON  (default Monday 00:00 UTC)
    weekly-snapshot      WEEKLY_SNAPSHOT_CRON     (default Monday 00:05 UTC)

The leaderboard must run after the last daily scoring of the week and
before the snapshot opens the next one.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from musiscore.core.config import settings
from musiscore.pipeline.runner import run_job

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job execution status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"
    MISSED = "missed"


class ScheduledJob:
    """Scheduled job definition"""

    def __init__(
        self,
        job_id: str,
        name: str,
        func: Callable,
        trigger_args: Dict[str, Any],
        enabled: bool = True,
        max_instances: int = 1,
        coalesce: bool = True,
        misfire_grace_time: int = 600,
    ):
        self.job_id = job_id
        self.name = name
        self.func = func
        self.trigger_args = trigger_args
        self.enabled = enabled
        self.max_instances = max_instances
        self.coalesce = coalesce
        self.misfire_grace_time = misfire_grace_time

        # Execution tracking
        self.last_run: Optional[datetime] = None
        self.last_status: JobStatus = JobStatus.PENDING
        self.last_message: Optional[str] = None
        self.run_count: int = 0
        self.error_count: int = 0
        self.last_error: Optional[str] = None


def parse_cron(cron_str: str) -> Dict[str, Any]:
    """
    Five-field cron string to CronTrigger kwargs.

    Raises:
        ValueError: Not five fields
    """
    parts = cron_str.split()
    if len(parts) != 5:
        raise ValueError(f"Invalid cron expression: {cron_str!r}")

    return {
        "minute": parts[0] if parts[0] != "*" else None,
        "hour": parts[1] if parts[1] != "*" else None,
        "day": parts[2] if parts[2] != "*" else None,
        "month": parts[3] if parts[3] != "*" else None,
        "day_of_week": parts[4] if parts[4] != "*" else None,
    }


class SchedulerService:
    """Runs the scoring jobs on their crons inside the current event loop."""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.SCHEDULER_ENABLED if enabled is None else enabled
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def initialize(self):
        """Initialize the scheduler"""
        if not self.enabled:
            logger.info("Scheduler is disabled")
            return

        self._scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': AsyncIOExecutor()},
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 600,
            },
            timezone='UTC',
        )

        self._scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

        self._register_default_jobs()

        logger.info("Scheduler initialized")

    async def start(self):
        """Start the scheduler"""
        if not self.enabled or not self._scheduler or self._running:
            return

        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    async def stop(self):
        """Stop the scheduler"""
        if self._scheduler and self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    def _register_default_jobs(self):
        default_jobs = [
            ScheduledJob(
                job_id="daily-scores",
                name="Daily Scores",
                func=self._make_pipeline_job("daily-scores"),
                trigger_args=parse_cron(settings.DAILY_SCORES_CRON),
            ),
            ScheduledJob(
                job_id="weekly-leaderboard",
                name="Weekly Leaderboard",
                func=self._make_pipeline_job("weekly-leaderboard"),
                trigger_args=parse_cron(settings.WEEKLY_LEADERBOARD_CRON),
            ),
            ScheduledJob(
                job_id="weekly-snapshot",
                name="Weekly Snapshot",
                func=self._make_pipeline_job("weekly-snapshot"),
                trigger_args=parse_cron(settings.WEEKLY_SNAPSHOT_CRON),
            ),
        ]

        for job in default_jobs:
            self.register_job(job)

    def _make_pipeline_job(self, job_id: str) -> Callable:
        async def run():
            job = self._jobs.get(job_id)
            if job:
                job.last_status = JobStatus.RUNNING

            logger.info(f"[Scheduler] Running {job_id}")
            summary = await run_job(job_id)

            if job:
                job.last_run = datetime.now(timezone.utc)
                job.run_count += 1
                job.last_message = summary.message
                if summary.error is not None:
                    job.last_status = JobStatus.FAILED
                    job.error_count += 1
                    job.last_error = summary.error
                elif summary.success:
                    job.last_status = JobStatus.COMPLETED
                else:
                    job.last_status = JobStatus.SKIPPED

            if summary.error is not None:
                logger.error(f"[Scheduler] {job_id} failed: {summary.error}")
            else:
                logger.info(f"[Scheduler] {job_id}: {summary.message}")
            return summary

        return run

    def register_job(self, job: ScheduledJob):
        """Register a job with the scheduler"""
        self._jobs[job.job_id] = job

        if not self._scheduler or not job.enabled:
            return

        trigger = CronTrigger(
            timezone='UTC',
            **{k: v for k, v in job.trigger_args.items() if v is not None},
        )

        self._scheduler.add_job(
            job.func,
            trigger=trigger,
            id=job.job_id,
            name=job.name,
            max_instances=job.max_instances,
            coalesce=job.coalesce,
            misfire_grace_time=job.misfire_grace_time,
            replace_existing=True,
        )

        logger.info(f"Registered job: {job.job_id} ({job.name})")

    def _on_job_executed(self, event: JobExecutionEvent):
        logger.debug(f"Job executed: {event.job_id}")

    def _on_job_error(self, event: JobExecutionEvent):
        """Handler for errors escaping a job function"""
        job = self._jobs.get(event.job_id)
        if job:
            job.last_run = datetime.now(timezone.utc)
            job.last_status = JobStatus.FAILED
            job.error_count += 1
            job.last_error = str(event.exception) if event.exception else "Unknown error"

        logger.error(f"Job failed: {event.job_id} - {event.exception}")

    def _on_job_missed(self, event: JobExecutionEvent):
        job = self._jobs.get(event.job_id)
        if job:
            job.last_status = JobStatus.MISSED

        logger.warning(f"Job missed: {event.job_id}")

    def get_jobs(self) -> List[Dict[str, Any]]:
        """Registered jobs with their last outcome and next run"""
        jobs = []

        for job_id, job in self._jobs.items():
            next_run = None
            if self._scheduler:
                scheduler_job = self._scheduler.get_job(job_id)
                if scheduler_job:
                    next_run = getattr(scheduler_job, "next_run_time", None)

            jobs.append({
                "job_id": job.job_id,
                "name": job.name,
                "enabled": job.enabled,
                "trigger_args": job.trigger_args,
                "last_run": job.last_run.isoformat() if job.last_run else None,
                "last_status": job.last_status.value,
                "last_message": job.last_message,
                "next_run": next_run.isoformat() if next_run else None,
                "run_count": job.run_count,
                "error_count": job.error_count,
                "last_error": job.last_error,
            })

        return jobs

    def get_status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "running": self._running,
            "total_jobs": len(self._jobs),
            "enabled_jobs": sum(1 for j in self._jobs.values() if j.enabled),
        }


# Global scheduler service instance
scheduler_service = SchedulerService()


def get_scheduler_service() -> SchedulerService:
    """Accessor for the process-wide scheduler service."""
    return scheduler_service
