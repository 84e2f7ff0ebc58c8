"""
Feed refresh: runs one feed through the ingestion pipeline.

The pipeline is an ordered list of steps, each tagged fatal or not:

    fetch (fatal) -> extract -> upsert (fatal) -> embed -> summarize -> cleanup

A fatal failure records the error on the feed and stops the pipeline. A
non-fatal failure is logged, added to the result's warnings and the
pipeline carries on.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..config import config
from ..database import Database, DBFeed
from ..extraction import ContentExtractor
from ..feeds import Candidate, FeedParser
from .article_service import ArticleService, UpsertResult
from .cleanup_service import ArticleCleanupService, CleanupResult
from .deduplication import merge_content
from .embedding_service import EmbeddingService
from .settings_cascade import EffectiveFeedSettings, SettingsResolver
from .summarization_service import SummarizationService

logger = logging.getLogger(__name__)

FEED_NOT_FOUND = "Feed not found"


@dataclass
class RefreshResult:
    feed_id: int
    success: bool = False
    new_count: int = 0
    updated_count: int = 0
    error: str | None = None
    duration_ms: int = 0
    embeddings_generated: int = 0
    summaries_generated: int = 0
    cleanup_result: CleanupResult | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class RefreshContext:
    """State handed from step to step during one refresh."""
    feed: DBFeed
    settings: EffectiveFeedSettings
    result: RefreshResult
    user_id: int | None = None
    candidates: list[Candidate] = field(default_factory=list)
    upsert: UpsertResult | None = None


def _always(ctx: RefreshContext) -> bool:
    return True


@dataclass(frozen=True)
class RefreshStep:
    name: str
    fatal: bool
    run: Callable[[RefreshContext], Awaitable[None]]
    enabled: Callable[[RefreshContext], bool] = _always


class FeedRefresher:
    """Refreshes single feeds. Collaborators are optional past fetch and upsert."""

    def __init__(
        self,
        db: Database,
        feed_parser: FeedParser,
        extractor: ContentExtractor | None = None,
        embedding_service: EmbeddingService | None = None,
        summarization_service: SummarizationService | None = None,
        cleanup_service: ArticleCleanupService | None = None,
    ):
        self.db = db
        self.feed_parser = feed_parser
        self.extractor = extractor
        self.embedding_service = embedding_service
        self.summarization_service = summarization_service
        self.cleanup_service = cleanup_service or ArticleCleanupService(
            db,
            default_max_age_days=config.CLEANUP_MAX_AGE_DAYS,
            default_max_articles=config.CLEANUP_MAX_ARTICLES_PER_FEED,
        )
        self.articles = ArticleService(db)
        self.resolver = SettingsResolver(db)
        self.steps = [
            RefreshStep("fetch", fatal=True, run=self._fetch),
            RefreshStep("extract", fatal=False, run=self._extract, enabled=self._wants_extraction),
            RefreshStep("upsert", fatal=True, run=self._upsert),
            RefreshStep("embed", fatal=False, run=self._embed, enabled=self._wants_embeddings),
            RefreshStep("summarize", fatal=False, run=self._summarize, enabled=self._wants_summaries),
            RefreshStep("cleanup", fatal=False, run=self._cleanup),
        ]

    async def refresh_feed(self, feed_id: int, user_id: int | None = None) -> RefreshResult:
        """
        Refresh one feed.

        Args:
            feed_id: Feed to refresh
            user_id: Whose cascade to apply; the feed's own settings when None

        Returns:
            RefreshResult; never raises for pipeline failures
        """
        started = time.monotonic()
        result = RefreshResult(feed_id=feed_id)

        feed = self.db.get_feed(feed_id)
        if feed is None:
            result.error = FEED_NOT_FOUND
            result.duration_ms = _elapsed_ms(started)
            return result

        ctx = RefreshContext(
            feed=feed,
            settings=self.resolver.for_feed(feed_id, user_id),
            result=result,
            user_id=user_id,
        )

        for step in self.steps:
            if not step.enabled(ctx):
                continue
            try:
                await step.run(ctx)
            except Exception as e:
                message = str(e) or type(e).__name__
                if step.fatal:
                    logger.warning(f"Refresh of feed {feed_id} failed at {step.name}: {message}")
                    self.db.record_feed_error(feed_id, message)
                    result.error = message
                    result.duration_ms = _elapsed_ms(started)
                    return result
                logger.warning(f"Refresh of feed {feed_id}: {step.name} step failed: {message}")
                result.warnings.append(f"{step.name}: {message}")

        self.db.update_feed_fetched(feed_id)
        result.success = True
        result.duration_ms = _elapsed_ms(started)
        logger.info(
            f"Refreshed feed {feed_id}: {result.new_count} new, "
            f"{result.updated_count} updated in {result.duration_ms}ms"
        )
        return result

    # ─────────────────────────────────────────────────────────────
    # Step predicates
    # ─────────────────────────────────────────────────────────────

    def _wants_extraction(self, ctx: RefreshContext) -> bool:
        return ctx.settings.uses_extraction and self.extractor is not None

    def _wants_embeddings(self, ctx: RefreshContext) -> bool:
        if self.embedding_service is None or not ctx.upsert or not ctx.upsert.article_ids:
            return False
        return self.db.get_bool_setting(
            Database.EMBEDDING_AUTO_GENERATE_KEY, config.EMBEDDING_AUTO_GENERATE
        )

    def _wants_summaries(self, ctx: RefreshContext) -> bool:
        if self.summarization_service is None or not self.summarization_service.available:
            return False
        if not ctx.settings.summarization_enabled or not ctx.upsert or not ctx.upsert.article_ids:
            return False
        return self.db.get_bool_setting(
            Database.SUMMARY_AUTO_GENERATE_KEY, config.SUMMARY_AUTO_GENERATE
        )

    # ─────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────

    async def _fetch(self, ctx: RefreshContext):
        parsed = await self.feed_parser.parse_feed_url(ctx.feed.url)
        ctx.candidates = parsed.items

    async def _extract(self, ctx: RefreshContext):
        """Replace each item's body with the extracted page, one item at a time."""
        failures = 0
        for candidate in ctx.candidates:
            if not candidate.link:
                continue
            try:
                extracted = await self.extractor.extract_content(
                    candidate.link, feed_id=ctx.feed.id, settings=ctx.settings
                )
            except Exception as e:
                logger.warning(f"Extraction of {candidate.link} raised: {e}")
                failures += 1
                continue
            if not extracted.success:
                # Keep the feed-native body for this item
                failures += 1
                continue

            candidate.content = merge_content(
                candidate.content, extracted.content, ctx.settings.merge_strategy
            )
            candidate.title = extracted.title or candidate.title
            candidate.excerpt = extracted.excerpt or candidate.excerpt
            candidate.author = extracted.author or candidate.author
            candidate.published_at = extracted.published_at or candidate.published_at
            candidate.image_url = extracted.image_url or candidate.image_url

        if failures:
            logger.debug(f"Feed {ctx.feed.id}: extraction fell back to feed content for {failures} items")

    async def _upsert(self, ctx: RefreshContext):
        ctx.upsert = self.articles.upsert_articles(ctx.feed.id, ctx.candidates)
        ctx.result.new_count = ctx.upsert.created
        ctx.result.updated_count = ctx.upsert.updated

    async def _embed(self, ctx: RefreshContext):
        batch = await self.embedding_service.generate_for_articles(
            ctx.upsert.article_ids, user_id=ctx.user_id
        )
        ctx.result.embeddings_generated = batch.processed
        if batch.failed:
            ctx.result.warnings.append(f"embed: {batch.failed} articles failed")

    async def _summarize(self, ctx: RefreshContext):
        summaries = await self.summarization_service.summarize_articles(
            ctx.upsert.article_ids, ctx.settings, user_id=ctx.user_id
        )
        ctx.result.summaries_generated = summaries.summarized
        if summaries.failed:
            ctx.result.warnings.append(f"summarize: {summaries.failed} articles failed")

    async def _cleanup(self, ctx: RefreshContext):
        ctx.result.cleanup_result = self.cleanup_service.cleanup(
            feed_id=ctx.feed.id,
            user_id=ctx.user_id,
            preserve_starred=config.CLEANUP_PRESERVE_STARRED,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
