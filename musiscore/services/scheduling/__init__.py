"""Scheduling service module."""

from .scheduler_service import (
    JobStatus,
    ScheduledJob,
    SchedulerService,
    get_scheduler_service,
    parse_cron,
)

__all__ = [
    "JobStatus",
    "ScheduledJob",
    "SchedulerService",
    "get_scheduler_service",
    "parse_cron",
]
