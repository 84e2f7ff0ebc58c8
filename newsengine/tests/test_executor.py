"""
Tests for the job executor: single-flight, run bookkeeping and log capture.
"""

import asyncio
import logging
import sqlite3

import pytest

from newsengine.jobs import JobExecutor, JobResult, JobStatus, TriggerSource
from newsengine.jobs.job_logger import JobLogCapture


@pytest.fixture
def executor(test_db):
    return JobExecutor(test_db)


class TestJobExecutor:
    """Tests for JobExecutor.run."""

    @pytest.mark.asyncio
    async def test_success_creates_and_completes_row(self, executor, test_db):
        """A successful handler should produce one SUCCESS row with stats."""
        async def handler():
            return JobResult(success=True, stats={"processed": 3})

        result = await executor.run("demo", handler, TriggerSource.MANUAL)

        assert result.success is True
        assert result.run_id is not None
        run = test_db.job_runs.get(result.run_id)
        assert run.status == JobStatus.SUCCESS.value
        assert run.triggered_by == "MANUAL"
        assert run.stats == {"processed": 3}
        assert run.error is None
        assert run.completed_at is not None
        assert run.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failed_run(self, executor, test_db):
        """An exception should be recorded, not propagated."""
        async def handler():
            raise RuntimeError("database exploded")

        result = await executor.run("demo", handler)

        assert result.success is False
        assert result.error == "database exploded"
        run = test_db.job_runs.get(result.run_id)
        assert run.status == JobStatus.FAILED.value
        assert run.error == "database exploded"
        assert run.triggered_by == "SCHEDULER"

    @pytest.mark.asyncio
    async def test_unsuccessful_result_without_error(self, executor, test_db):
        """A failed result with no message still gets an error on the row."""
        async def handler():
            return JobResult(success=False)

        result = await executor.run("demo", handler)
        run = test_db.job_runs.get(result.run_id)
        assert run.status == "FAILED"
        assert run.error == "Unknown error"

    @pytest.mark.asyncio
    async def test_single_flight(self, executor, test_db):
        """A second call while the first is in flight should be skipped."""
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_handler():
            started.set()
            await release.wait()
            return JobResult(success=True)

        first = asyncio.create_task(executor.run("demo", slow_handler))
        await started.wait()

        assert executor.is_running("demo")
        assert executor.running_jobs() == ["demo"]
        assert await executor.run("demo", slow_handler) is None

        release.set()
        result = await first

        assert result.success is True
        assert not executor.is_running("demo")
        assert len(test_db.get_job_history("demo")) == 1

    @pytest.mark.asyncio
    async def test_different_jobs_run_concurrently(self, executor):
        """The guard is per job name."""
        release = asyncio.Event()

        async def blocking():
            await release.wait()
            return JobResult(success=True)

        async def quick():
            return JobResult(success=True)

        task = asyncio.create_task(executor.run("slow", blocking))
        await asyncio.sleep(0)

        result = await executor.run("fast", quick)
        assert result is not None and result.success

        release.set()
        await task

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, executor):
        """A failed run must not leave the job locked."""
        async def failing():
            raise ValueError("nope")

        await executor.run("demo", failing)
        assert not executor.is_running("demo")
        assert await executor.run("demo", failing) is not None

    @pytest.mark.asyncio
    async def test_unrecordable_start_is_contained(self, executor, test_db, monkeypatch):
        """A database error creating the row fails the run without raising."""
        calls = []

        async def handler():
            calls.append(1)
            return JobResult(success=True)

        def broken_create(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(test_db.job_runs, "create", broken_create)

        result = await executor.run("demo", handler)

        assert result.success is False
        assert "database is locked" in result.error
        assert result.run_id is None
        assert calls == []
        assert not executor.is_running("demo")

    @pytest.mark.asyncio
    async def test_unrecordable_completion_is_contained(self, executor, test_db, monkeypatch):
        """A database error finalizing the row still returns the handler's result."""
        async def handler():
            return JobResult(success=True, stats={"processed": 1})

        def broken_complete(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(test_db.job_runs, "complete", broken_complete)

        result = await executor.run("demo", handler)

        assert result.success is True
        assert test_db.job_runs.get(result.run_id).status == JobStatus.RUNNING.value

    @pytest.mark.asyncio
    async def test_cancellation_finalizes_row(self, executor, test_db):
        """A cancelled run should still be finalized as FAILED."""
        started = asyncio.Event()

        async def forever():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(executor.run("demo", forever))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        run = test_db.job_runs.get_last("demo")
        assert run.status == "FAILED"
        assert run.error == "Cancelled"

    @pytest.mark.asyncio
    async def test_logs_are_captured_on_row(self, executor, test_db):
        """Records from the package logger during the run are stored."""
        job_logger = logging.getLogger("newsengine.tests.job")

        async def handler():
            job_logger.info("working on it")
            job_logger.warning("something odd")
            return JobResult(success=True)

        result = await executor.run("demo", handler)

        run = test_db.job_runs.get(result.run_id)
        messages = [line["message"] for line in run.logs]
        assert "working on it" in messages
        assert "something odd" in messages
        levels = {line["message"]: line["level"] for line in run.logs}
        assert levels["something odd"] == "warning"


class TestJobLogCapture:
    """Tests for the bounded log buffer."""

    def test_keeps_newest_lines(self):
        capture = JobLogCapture(max_lines=3)
        log = logging.getLogger("newsengine.tests.capture")
        with capture.capture():
            for i in range(5):
                log.info(f"line {i}")

        assert [line["message"] for line in capture.lines] == ["line 2", "line 3", "line 4"]

    def test_truncates_long_messages(self):
        capture = JobLogCapture(max_message_length=10)
        log = logging.getLogger("newsengine.tests.capture")
        with capture.capture():
            log.info("x" * 50)

        assert capture.lines[0]["message"] == "x" * 10 + "...[truncated]"

    def test_ignores_records_outside_capture(self):
        capture = JobLogCapture()
        log = logging.getLogger("newsengine.tests.capture")
        with capture.capture():
            log.info("inside")
        log.info("outside")

        assert [line["message"] for line in capture.lines] == ["inside"]

    def test_stats_counts_levels(self):
        capture = JobLogCapture()
        log = logging.getLogger("newsengine.tests.capture")
        with capture.capture():
            log.info("a")
            log.info("b")
            log.error("c")

        assert capture.stats() == {"info": 2, "error": 1}
        capture.clear()
        assert capture.lines == []
