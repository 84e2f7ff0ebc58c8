"""
Handlers for the standing jobs.

Each factory closes over the services a job needs and returns the
coroutine function the executor runs. Handlers report through JobResult;
anything they raise is turned into a failed run by the executor.
"""

import asyncio
import logging
from dataclasses import asdict

from ..database import Database
from ..services import ArticleCleanupService, BatchRefresher, CostTracker, EmbeddingService
from .executor import JobHandler, JobResult

logger = logging.getLogger(__name__)

FEED_REFRESH_JOB = "feed-refresh"
CLEANUP_JOB = "cleanup"
EMBEDDING_JOB = "embedding-generation"


def create_feed_refresh_handler(batch: BatchRefresher) -> JobHandler:
    """Refresh every due feed. Individual feed failures do not fail the run."""

    async def run_feed_refresh() -> JobResult:
        outcome = await batch.refresh_all_due()
        stats = asdict(outcome.stats)

        users = set().union(*outcome.feed_users.values()) if outcome.feed_users else set()
        stats["users"] = len(users)
        stats["articles_cleaned_up"] = sum(
            r.cleanup_result.deleted for r in outcome.results if r.cleanup_result
        )
        stats["embeddings_generated"] = sum(r.embeddings_generated for r in outcome.results)
        stats["summaries_generated"] = sum(r.summaries_generated for r in outcome.results)

        for result in outcome.results:
            if result.success:
                logger.info(
                    f"Feed {result.feed_id}: +{result.new_count} new, "
                    f"~{result.updated_count} updated"
                )
            else:
                logger.error(f"Feed {result.feed_id}: {result.error}")

        return JobResult(success=True, stats=stats)

    return run_feed_refresh


def create_cleanup_handler(
    db: Database,
    cleanup: ArticleCleanupService,
    cost_tracker: CostTracker,
    preserve_starred: bool = True,
    vacuum_threshold: int = 100,
    cost_retention_days: int = 365,
) -> JobHandler:
    """System-wide retention, ledger pruning and an occasional VACUUM."""

    async def run_cleanup() -> JobResult:
        result = cleanup.cleanup(preserve_starred=preserve_starred)
        pruned = cost_tracker.prune(cost_retention_days)

        vacuum_run = False
        if result.deleted > vacuum_threshold:
            logger.info("Running database vacuum...")
            await asyncio.get_running_loop().run_in_executor(None, db.vacuum)
            vacuum_run = True

        return JobResult(success=True, stats={
            **asdict(result),
            "cost_entries_pruned": pruned,
            "vacuum_run": vacuum_run,
        })

    return run_cleanup


def create_embedding_handler(
    embeddings: EmbeddingService,
    batch_size: int = 50,
    max_batches: int = 10,
) -> JobHandler:
    """Backfill embeddings for articles that lack them."""

    async def run_embedding_generation() -> JobResult:
        if embeddings.provider is None:
            return JobResult(success=False, error="No embedding provider configured")

        result = await embeddings.process_articles_without_embeddings(batch_size, max_batches)
        stats = {
            "processed": result.processed,
            "failed": result.failed,
            "total_tokens": result.total_tokens,
            "batches_processed": result.batches_processed,
            "coverage": embeddings.get_embedding_stats(),
        }
        if result.already_running:
            stats["skipped"] = "already running"
        return JobResult(success=True, stats=stats)

    return run_embedding_generation
