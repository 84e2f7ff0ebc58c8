"""
Scheduled job wrapper: one cron timer per job, ticks routed through the executor.
"""

import logging
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from . import cron
from .executor import JobExecutor, JobHandler, JobResult, TriggerSource

logger = logging.getLogger(__name__)


class ScheduledJob:
    """
    A named job with a cron schedule.

    `start` registers a single APScheduler job; `stop` removes it. Stopping
    never interrupts a run that is already in progress.
    """

    def __init__(
        self,
        name: str,
        handler: JobHandler,
        default_schedule: str,
        executor: JobExecutor,
        scheduler: BaseScheduler,
        display_name: str | None = None,
        description: str = "",
    ):
        self.name = name
        self.handler = handler
        self.default_schedule = default_schedule
        self.schedule = default_schedule
        self.executor = executor
        self.scheduler = scheduler
        self.display_name = display_name or name
        self.description = description
        self._job = None

    def start(self, cron_expression: str | None = None):
        """
        Register the timer.

        Raises:
            InvalidCronExpressionError: If the expression is invalid
        """
        expression = cron_expression or self.default_schedule
        trigger = cron.build_trigger(expression)

        if self._job is not None:
            logger.info(f"{self.display_name} scheduler already running")
            return

        self._job = self.scheduler.add_job(
            self._tick,
            trigger=trigger,
            id=self.name,
            name=self.display_name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.schedule = expression
        logger.info(f"{self.display_name} scheduler started with expression: {expression}")

    def stop(self):
        if self._job is None:
            return
        try:
            self.scheduler.remove_job(self.name)
        except JobLookupError:
            logger.debug(f"{self.display_name} timer was already removed")
        self._job = None
        logger.info(f"{self.display_name} scheduler stopped")

    def is_running(self) -> bool:
        """True while the timer is registered."""
        return self._job is not None

    def is_executing(self) -> bool:
        """True while a run of this job is in flight."""
        return self.executor.is_running(self.name)

    def next_run_time(self) -> datetime | None:
        if self._job is None:
            return None
        scheduled = getattr(self._job, "next_run_time", None)
        if isinstance(scheduled, datetime):
            return scheduled
        # Timer registered before the scheduler started
        return cron.next_run_time(self.schedule)

    async def _tick(self) -> JobResult | None:
        return await self.executor.run(self.name, self.handler, TriggerSource.SCHEDULER)

    async def trigger(self) -> JobResult | None:
        """Run the job now, outside its schedule."""
        return await self.executor.run(self.name, self.handler, TriggerSource.MANUAL)

    def status(self) -> dict:
        next_run = self.next_run_time()
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "enabled": self.is_running(),
            "running": self.is_executing(),
            "schedule": self.schedule,
            "schedule_description": cron.describe_cron(self.schedule),
            "next_run": next_run,
            "time_until_next_run": cron.time_until_next_run(next_run) if next_run else None,
        }
