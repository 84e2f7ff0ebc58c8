"""
Job scheduler facade.

Owns the long-lived services of the pipeline, the job executor and one
APScheduler instance, and exposes the operations the server and routes
need: start/stop, status, manual triggers, run history and reconciliation
of runs left RUNNING by a crash.
"""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler

from ..config import config
from ..database import Database, DBJobRun
from ..exceptions import FeedNotFoundError
from ..services import (
    ArticleCleanupService,
    BatchRefresher,
    BatchRefreshResult,
    CostTracker,
    EmbeddingService,
    FeedRefresher,
    RefreshResult,
    SummarizationService,
)
from . import cron
from .executor import JobExecutor, JobResult
from .handlers import (
    CLEANUP_JOB,
    EMBEDDING_JOB,
    FEED_REFRESH_JOB,
    create_cleanup_handler,
    create_embedding_handler,
    create_feed_refresh_handler,
)
from .scheduled import ScheduledJob

if TYPE_CHECKING:
    from ..embeddings import EmbeddingProvider
    from ..extraction import ContentExtractor
    from ..feeds import FeedParser
    from ..summarizer import Summarizer

logger = logging.getLogger(__name__)

STALE_RUN_ERROR = "Interrupted: process stopped before the run completed"

# Settings-table overrides of the environment schedules
SCHEDULE_KEYS = {
    FEED_REFRESH_JOB: Database.FEED_REFRESH_SCHEDULE_KEY,
    CLEANUP_JOB: Database.CLEANUP_SCHEDULE_KEY,
    EMBEDDING_JOB: Database.EMBEDDING_SCHEDULE_KEY,
}


class Scheduler:
    """Process-wide entry point for the ingestion jobs."""

    def __init__(
        self,
        db: Database,
        feed_parser: "FeedParser",
        extractor: "ContentExtractor | None" = None,
        embedding_provider: "EmbeddingProvider | None" = None,
        summarizer: "Summarizer | None" = None,
        scheduler: BaseScheduler | None = None,
    ):
        self.db = db
        self.executor = JobExecutor(db)
        self._scheduler = scheduler or AsyncIOScheduler()
        self._initialized = False

        self.cost_tracker = CostTracker(db)
        self.cleanup_service = ArticleCleanupService(
            db,
            default_max_age_days=config.CLEANUP_MAX_AGE_DAYS,
            default_max_articles=config.CLEANUP_MAX_ARTICLES_PER_FEED,
        )
        self.embedding_service = EmbeddingService(
            db,
            embedding_provider,
            cost_tracker=self.cost_tracker,
            request_size=config.EMBEDDING_BATCH_SIZE,
        )
        self.summarization_service = SummarizationService(db, summarizer, self.cost_tracker)
        self.refresher = FeedRefresher(
            db,
            feed_parser,
            extractor=extractor,
            embedding_service=self.embedding_service,
            summarization_service=self.summarization_service,
            cleanup_service=self.cleanup_service,
        )
        self.batch = BatchRefresher(
            db,
            self.refresher,
            max_concurrent=config.MAX_CONCURRENT_FEEDS,
            error_threshold=config.FEED_ERROR_THRESHOLD,
        )

        self.jobs: dict[str, ScheduledJob] = {
            FEED_REFRESH_JOB: ScheduledJob(
                FEED_REFRESH_JOB,
                create_feed_refresh_handler(self.batch),
                config.FEED_REFRESH_SCHEDULE,
                self.executor,
                self._scheduler,
                display_name="Feed Refresh",
                description="Refreshes due feeds and ingests new articles",
            ),
            CLEANUP_JOB: ScheduledJob(
                CLEANUP_JOB,
                create_cleanup_handler(
                    db,
                    self.cleanup_service,
                    self.cost_tracker,
                    preserve_starred=config.CLEANUP_PRESERVE_STARRED,
                    vacuum_threshold=config.VACUUM_THRESHOLD,
                    cost_retention_days=config.COST_RETENTION_DAYS,
                ),
                config.CLEANUP_SCHEDULE,
                self.executor,
                self._scheduler,
                display_name="Article Cleanup",
                description="Removes old articles and performs database maintenance",
            ),
            EMBEDDING_JOB: ScheduledJob(
                EMBEDDING_JOB,
                create_embedding_handler(self.embedding_service),
                config.EMBEDDING_SCHEDULE,
                self.executor,
                self._scheduler,
                display_name="Embedding Generation",
                description="Generates embeddings for articles that lack them",
            ),
        }

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def _configured_schedule(self, job_name: str) -> str:
        stored = self.db.get_setting(SCHEDULE_KEYS[job_name])
        return stored or self.jobs[job_name].default_schedule

    def start(self):
        """
        Register the standing jobs and start the timer loop.

        Must be called from within a running event loop.
        """
        if self._initialized:
            logger.warning("Scheduler already initialized")
            return

        logger.info("Initializing cron job scheduler...")
        self.jobs[FEED_REFRESH_JOB].start(self._configured_schedule(FEED_REFRESH_JOB))
        self.jobs[CLEANUP_JOB].start(self._configured_schedule(CLEANUP_JOB))
        if config.ENABLE_EMBEDDING_JOB:
            self.jobs[EMBEDDING_JOB].start(self._configured_schedule(EMBEDDING_JOB))

        if not self._scheduler.running:
            self._scheduler.start()
        self._initialized = True
        logger.info("Cron job scheduler initialized")

    def stop(self):
        """Remove all timers. Runs already in flight are left to finish."""
        if not self._initialized:
            logger.warning("Scheduler not initialized")
            return

        for job in self.jobs.values():
            job.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._initialized = False
        logger.info("Cron job scheduler stopped")

    def is_initialized(self) -> bool:
        return self._initialized

    def reschedule(self, job_name: str, expression: str):
        """
        Replace a job's schedule and remember it in the settings table.

        Raises:
            KeyError: Unknown job
            InvalidCronExpressionError: Invalid expression; the old timer is kept
        """
        job = self.get_job(job_name)
        cron.build_trigger(expression)

        was_running = job.is_running()
        job.stop()
        if was_running:
            job.start(expression)
        else:
            job.schedule = expression

        self.db.set_setting(SCHEDULE_KEYS[job_name], expression)

    # ─────────────────────────────────────────────────────────────
    # Status and history
    # ─────────────────────────────────────────────────────────────

    def get_job(self, job_name: str) -> ScheduledJob:
        """Raises KeyError for an unknown job name."""
        return self.jobs[job_name]

    def get_status(self) -> dict:
        jobs = []
        for job in self.jobs.values():
            status = job.status()
            last_run = self.db.job_runs.get_last(job.name)
            status["last_run"] = last_run
            jobs.append(status)
        return {
            "enabled": config.ENABLE_CRON_JOBS,
            "initialized": self._initialized,
            "jobs": jobs,
        }

    def get_history(self, job_name: str | None = None, limit: int = 50) -> list[DBJobRun]:
        return self.db.get_job_history(job_name, limit)

    def get_job_stats(self, job_name: str) -> dict:
        return self.db.job_runs.get_stats(job_name)

    def reconcile_stale_runs(self, older_than_minutes: int = 60) -> int:
        """
        Mark RUNNING rows older than the cutoff as FAILED.

        Jobs executing in this process are never touched.
        """
        cutoff = datetime.now() - timedelta(minutes=older_than_minutes)
        count = self.db.job_runs.fail_stale(
            cutoff, STALE_RUN_ERROR, exclude_jobs=self.executor.running_jobs()
        )
        if count:
            logger.warning(f"Marked {count} stale job runs as failed")
        return count

    # ─────────────────────────────────────────────────────────────
    # Manual triggers
    # ─────────────────────────────────────────────────────────────

    async def trigger_job(self, job_name: str) -> JobResult | None:
        """
        Run a job now. Returns None if it is already running.

        Raises:
            KeyError: Unknown job name
        """
        return await self.get_job(job_name).trigger()

    async def refresh_feed(self, feed_id: int, user_id: int | None = None) -> RefreshResult:
        """
        Refresh one feed immediately.

        Raises:
            FeedNotFoundError: If the feed does not exist
        """
        if self.db.get_feed(feed_id) is None:
            raise FeedNotFoundError(feed_id)
        return await self.refresher.refresh_feed(feed_id, user_id)

    async def refresh_user_feeds(self, user_id: int) -> BatchRefreshResult:
        """Refresh one user's due feeds immediately."""
        return await self.batch.refresh_user_feeds(user_id)


# Global scheduler instance (initialized by server.py)
scheduler: Scheduler | None = None


def start_scheduler(
    db: Database,
    feed_parser: "FeedParser",
    extractor: "ContentExtractor | None" = None,
    embedding_provider: "EmbeddingProvider | None" = None,
    summarizer: "Summarizer | None" = None,
    enabled: bool = True,
) -> Scheduler:
    """Create the global scheduler and, when enabled, start its timers."""
    global scheduler
    scheduler = Scheduler(db, feed_parser, extractor, embedding_provider, summarizer)
    if enabled:
        scheduler.start()
    else:
        logger.info("Cron jobs are disabled (ENABLE_CRON_JOBS=false)")
    return scheduler


def stop_scheduler():
    """Stop the global scheduler."""
    global scheduler
    if scheduler and scheduler.is_initialized():
        scheduler.stop()
    scheduler = None
