"""
Job executor: single-flight guard, timing and JobRun bookkeeping.

Every execution of a named job goes through `JobExecutor.run`. While a run
of a job is in flight, further calls for the same name return None without
touching the database. Each accepted call creates a RUNNING row first and
finalizes it exactly once as SUCCESS or FAILED, whatever the handler does.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from ..database import Database
from .job_logger import JobLogCapture

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TriggerSource(str, Enum):
    SCHEDULER = "SCHEDULER"
    MANUAL = "MANUAL"


@dataclass
class JobResult:
    success: bool
    stats: dict = field(default_factory=dict)
    error: str | None = None
    run_id: int | None = None


JobHandler = Callable[[], Awaitable[JobResult]]


class JobExecutor:
    """Runs job handlers with at most one in-flight run per job name."""

    def __init__(self, db: Database):
        self.db = db
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, job_name: str) -> asyncio.Lock:
        if job_name not in self._locks:
            self._locks[job_name] = asyncio.Lock()
        return self._locks[job_name]

    def is_running(self, job_name: str) -> bool:
        lock = self._locks.get(job_name)
        return lock is not None and lock.locked()

    def running_jobs(self) -> list[str]:
        return [name for name, lock in self._locks.items() if lock.locked()]

    async def run(
        self,
        job_name: str,
        handler: JobHandler,
        triggered_by: TriggerSource = TriggerSource.SCHEDULER,
    ) -> JobResult | None:
        """
        Execute `handler` as a tracked run of `job_name`.

        Returns:
            The handler's JobResult (with run_id set), a failed JobResult if
            the handler raised, or None if the job was already running
        """
        lock = self._lock_for(job_name)
        if lock.locked():
            logger.info(f"Job already running, skipping: {job_name}")
            return None

        async with lock:
            return await self._execute(job_name, handler, TriggerSource(triggered_by))

    async def _execute(
        self,
        job_name: str,
        handler: JobHandler,
        triggered_by: TriggerSource,
    ) -> JobResult:
        try:
            run_id = self.db.job_runs.create(job_name, triggered_by.value, datetime.now())
        except Exception as e:
            logger.exception(f"Could not record start of job: {job_name}")
            return JobResult(success=False, error=f"Failed to record job run: {e}")

        started = time.monotonic()
        capture = JobLogCapture()

        with capture.capture():
            logger.info(f"Starting job: {job_name} ({triggered_by.value.lower()})")
            try:
                result = await handler()
            except asyncio.CancelledError:
                self._finalize(run_id, JobResult(success=False, error="Cancelled"), started, capture)
                raise
            except Exception as e:
                logger.exception(f"Job threw exception: {job_name}")
                result = JobResult(success=False, error=str(e) or type(e).__name__)

            duration_ms = _elapsed_ms(started)
            if result.success:
                logger.info(f"Job completed: {job_name} in {duration_ms}ms")
            else:
                logger.error(f"Job failed: {job_name}: {result.error}")

        self._finalize(run_id, result, started, capture)
        result.run_id = run_id
        return result

    def _finalize(self, run_id: int, result: JobResult, started: float, capture: JobLogCapture):
        try:
            self.db.job_runs.complete(
                run_id,
                status=JobStatus.SUCCESS.value if result.success else JobStatus.FAILED.value,
                duration_ms=_elapsed_ms(started),
                stats=result.stats or None,
                error=None if result.success else (result.error or "Unknown error"),
                logs=capture.lines,
            )
        except Exception:
            # The row stays RUNNING until reconciled
            logger.exception(f"Could not record completion of job run {run_id}")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
