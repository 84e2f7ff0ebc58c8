"""
Scheduled jobs: cron schedules, the single-flight executor and the scheduler facade.
"""

from .cron import (
    REFRESH_SCHEDULES,
    build_trigger,
    describe_cron,
    next_run_time,
    time_until_next_run,
    validate_cron_expression,
)
from .executor import JobExecutor, JobResult, JobStatus, TriggerSource
from .handlers import CLEANUP_JOB, EMBEDDING_JOB, FEED_REFRESH_JOB
from .job_logger import JobLogCapture
from .scheduled import ScheduledJob
from .scheduler import Scheduler, start_scheduler, stop_scheduler

__all__ = [
    "REFRESH_SCHEDULES",
    "build_trigger",
    "describe_cron",
    "next_run_time",
    "time_until_next_run",
    "validate_cron_expression",
    "JobExecutor",
    "JobResult",
    "JobStatus",
    "TriggerSource",
    "JobLogCapture",
    "ScheduledJob",
    "Scheduler",
    "start_scheduler",
    "stop_scheduler",
    "CLEANUP_JOB",
    "EMBEDDING_JOB",
    "FEED_REFRESH_JOB",
]
