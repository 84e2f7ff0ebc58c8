"""
Tests for ScheduledJob and the Scheduler facade.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from apscheduler.jobstores.base import JobLookupError

from newsengine.config import config
from newsengine.database import Database
from newsengine.exceptions import FeedNotFoundError, InvalidCronExpressionError
from newsengine.jobs import JobExecutor, JobResult, ScheduledJob
from newsengine.jobs.handlers import CLEANUP_JOB, EMBEDDING_JOB, FEED_REFRESH_JOB
from newsengine.jobs.scheduler import STALE_RUN_ERROR


async def _ok():
    return JobResult(success=True, stats={"ran": True})


@pytest.fixture
def timer_backend():
    return MagicMock(running=False)


@pytest.fixture
def job(test_db, timer_backend):
    return ScheduledJob(
        "demo",
        _ok,
        "*/30 * * * *",
        JobExecutor(test_db),
        timer_backend,
        display_name="Demo Job",
    )


class TestScheduledJob:
    """Tests for timer registration and triggering."""

    def test_start_registers_one_timer(self, job, timer_backend):
        job.start()

        timer_backend.add_job.assert_called_once()
        kwargs = timer_backend.add_job.call_args.kwargs
        assert kwargs["id"] == "demo"
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert job.is_running()
        assert job.schedule == "*/30 * * * *"

    def test_start_twice_is_noop(self, job, timer_backend):
        job.start()
        job.start("0 * * * *")

        assert timer_backend.add_job.call_count == 1
        assert job.schedule == "*/30 * * * *"

    def test_start_with_invalid_expression_raises(self, job, timer_backend):
        with pytest.raises(InvalidCronExpressionError):
            job.start("every tuesday")
        timer_backend.add_job.assert_not_called()
        assert not job.is_running()

    def test_stop_removes_timer(self, job, timer_backend):
        job.start()
        job.stop()

        timer_backend.remove_job.assert_called_once_with("demo")
        assert not job.is_running()
        assert job.next_run_time() is None

    def test_stop_tolerates_missing_timer(self, job, timer_backend):
        timer_backend.remove_job.side_effect = JobLookupError("demo")
        job.start()
        job.stop()
        assert not job.is_running()

    def test_stop_when_not_started(self, job, timer_backend):
        job.stop()
        timer_backend.remove_job.assert_not_called()

    def test_next_run_time_falls_back_to_expression(self, job):
        """Before the backend computes one, the next run comes from the expression."""
        job.start()
        next_run = job.next_run_time()
        assert next_run is not None
        assert next_run > datetime.now()
        assert next_run.minute in (0, 30)

    def test_status(self, job):
        job.start()
        status = job.status()
        assert status["name"] == "demo"
        assert status["display_name"] == "Demo Job"
        assert status["enabled"] is True
        assert status["running"] is False
        assert status["schedule_description"] == "Every 30 minutes"
        assert status["time_until_next_run"].startswith("in ")

    @pytest.mark.asyncio
    async def test_trigger_is_manual(self, job, test_db):
        result = await job.trigger()
        assert result.success
        assert test_db.job_runs.get(result.run_id).triggered_by == "MANUAL"

    @pytest.mark.asyncio
    async def test_tick_is_scheduler(self, job, test_db):
        result = await job._tick()
        assert test_db.job_runs.get(result.run_id).triggered_by == "SCHEDULER"


class TestScheduler:
    """Tests for the Scheduler facade."""

    def test_start_registers_standing_jobs(self, scheduler, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_EMBEDDING_JOB", False)
        scheduler.start()

        assert scheduler.is_initialized()
        assert scheduler.get_job(FEED_REFRESH_JOB).is_running()
        assert scheduler.get_job(CLEANUP_JOB).is_running()
        assert not scheduler.get_job(EMBEDDING_JOB).is_running()

        scheduler.stop()
        assert not scheduler.is_initialized()
        assert not scheduler.get_job(FEED_REFRESH_JOB).is_running()

    def test_start_uses_stored_schedule(self, scheduler, test_db):
        test_db.set_setting(Database.FEED_REFRESH_SCHEDULE_KEY, "*/15 * * * *")
        scheduler.start()
        assert scheduler.get_job(FEED_REFRESH_JOB).schedule == "*/15 * * * *"
        scheduler.stop()

    def test_reschedule_persists(self, scheduler, test_db):
        scheduler.start()
        scheduler.reschedule(CLEANUP_JOB, "0 4 * * *")

        job = scheduler.get_job(CLEANUP_JOB)
        assert job.schedule == "0 4 * * *"
        assert job.is_running()
        assert test_db.get_setting(Database.CLEANUP_SCHEDULE_KEY) == "0 4 * * *"
        scheduler.stop()

    def test_reschedule_stopped_embedding_job_survives_start(self, scheduler, test_db, monkeypatch):
        """A schedule set while the embedding job is off is used once it is enabled."""
        monkeypatch.setattr(config, "ENABLE_EMBEDDING_JOB", False)
        scheduler.reschedule(EMBEDDING_JOB, "15 */2 * * *")
        assert not scheduler.get_job(EMBEDDING_JOB).is_running()
        assert test_db.get_setting(Database.EMBEDDING_SCHEDULE_KEY) == "15 */2 * * *"

        monkeypatch.setattr(config, "ENABLE_EMBEDDING_JOB", True)
        scheduler.start()

        job = scheduler.get_job(EMBEDDING_JOB)
        assert job.is_running()
        assert job.schedule == "15 */2 * * *"
        scheduler.stop()

    def test_reschedule_invalid_keeps_old_timer(self, scheduler):
        scheduler.start()
        with pytest.raises(InvalidCronExpressionError):
            scheduler.reschedule(CLEANUP_JOB, "bad")
        job = scheduler.get_job(CLEANUP_JOB)
        assert job.is_running()
        assert job.schedule == "0 3 * * *"
        scheduler.stop()

    def test_unknown_job(self, scheduler):
        with pytest.raises(KeyError):
            scheduler.get_job("nope")

    def test_status_lists_all_jobs(self, scheduler):
        status = scheduler.get_status()
        names = [job["name"] for job in status["jobs"]]
        assert names == [FEED_REFRESH_JOB, CLEANUP_JOB, EMBEDDING_JOB]
        assert status["initialized"] is False
        assert all(job["last_run"] is None for job in status["jobs"])

    def test_reconcile_stale_runs(self, scheduler, test_db):
        stale = test_db.job_runs.create(FEED_REFRESH_JOB, "SCHEDULER", datetime.now() - timedelta(hours=2))
        fresh = test_db.job_runs.create(CLEANUP_JOB, "SCHEDULER", datetime.now())

        assert scheduler.reconcile_stale_runs(older_than_minutes=60) == 1

        run = test_db.job_runs.get(stale)
        assert run.status == "FAILED"
        assert run.error == STALE_RUN_ERROR
        assert test_db.job_runs.get(fresh).status == "RUNNING"

    @pytest.mark.asyncio
    async def test_trigger_cleanup_job(self, scheduler, test_db):
        result = await scheduler.trigger_job(CLEANUP_JOB)
        assert result.success
        assert result.stats["deleted"] == 0
        assert result.stats["vacuum_run"] is False
        assert scheduler.get_job_stats(CLEANUP_JOB)["total_runs"] == 1

    @pytest.mark.asyncio
    async def test_trigger_embedding_job_without_provider_fails(self, scheduler, test_db):
        result = await scheduler.trigger_job(EMBEDDING_JOB)
        assert result.success is False
        assert result.error == "No embedding provider configured"
        assert test_db.job_runs.get(result.run_id).status == "FAILED"

    @pytest.mark.asyncio
    async def test_trigger_feed_refresh_job(self, scheduler, test_db, feed_id):
        result = await scheduler.trigger_job(FEED_REFRESH_JOB)

        assert result.success
        assert result.stats["total_feeds"] == 1
        assert result.stats["successful"] == 1
        assert result.stats["total_new_articles"] == 2
        assert test_db.articles.count(feed_id) == 2

    @pytest.mark.asyncio
    async def test_refresh_missing_feed(self, scheduler):
        with pytest.raises(FeedNotFoundError):
            await scheduler.refresh_feed(999)
