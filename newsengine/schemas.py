"""
Pydantic models for API request/response validation.
"""

from typing import Any

from pydantic import BaseModel, Field

from .database import DBCostEntry, DBFeed, DBJobRun
from .services import (
    BatchRefreshResult,
    CleanupResult,
    EffectiveFeedSettings,
    FeedSettingsOverride,
    RefreshResult,
)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


# ─────────────────────────────────────────────────────────────
# Job Schemas
# ─────────────────────────────────────────────────────────────

class JobRunResponse(BaseModel):
    """One recorded execution of a job."""
    id: int
    job_name: str
    status: str
    triggered_by: str
    started_at: str
    completed_at: str | None
    duration_ms: int | None
    stats: dict[str, Any] | None
    error: str | None
    logs: list[dict] = []

    @classmethod
    def from_db(cls, run: DBJobRun, include_logs: bool = False) -> "JobRunResponse":
        return cls(
            id=run.id,
            job_name=run.job_name,
            status=run.status,
            triggered_by=run.triggered_by,
            started_at=run.started_at.isoformat(),
            completed_at=_iso(run.completed_at),
            duration_ms=run.duration_ms,
            stats=run.stats,
            error=run.error,
            logs=run.logs if include_logs else [],
        )


class JobStatusResponse(BaseModel):
    name: str
    display_name: str
    description: str
    enabled: bool
    running: bool
    schedule: str
    schedule_description: str
    next_run: str | None
    time_until_next_run: str | None
    last_run: JobRunResponse | None = None

    @classmethod
    def from_status(cls, status: dict) -> "JobStatusResponse":
        last_run = status.get("last_run")
        return cls(
            **{k: v for k, v in status.items() if k not in ("next_run", "last_run")},
            next_run=_iso(status.get("next_run")),
            last_run=JobRunResponse.from_db(last_run) if last_run else None,
        )


class SchedulerStatusResponse(BaseModel):
    enabled: bool
    initialized: bool
    jobs: list[JobStatusResponse]


class JobTriggerResponse(BaseModel):
    """Outcome of a manual job trigger."""
    job_name: str
    skipped: bool = False  # True when a run was already in flight
    success: bool | None = None
    run_id: int | None = None
    stats: dict[str, Any] = {}
    error: str | None = None


class JobStatsResponse(BaseModel):
    job_name: str
    total_runs: int
    successful: int
    failed: int
    average_duration_ms: int
    last_run_at: str | None
    last_status: str | None


class ScheduleUpdateRequest(BaseModel):
    schedule: str = Field(min_length=9)


# ─────────────────────────────────────────────────────────────
# Refresh Schemas
# ─────────────────────────────────────────────────────────────

class CleanupResponse(BaseModel):
    deleted: int
    preserved: int
    by_age: int
    by_count: int

    @classmethod
    def from_result(cls, result: CleanupResult) -> "CleanupResponse":
        return cls(
            deleted=result.deleted,
            preserved=result.preserved,
            by_age=result.by_age,
            by_count=result.by_count,
        )


class RefreshResultResponse(BaseModel):
    feed_id: int
    success: bool
    new_count: int
    updated_count: int
    error: str | None
    duration_ms: int
    embeddings_generated: int
    summaries_generated: int
    cleanup: CleanupResponse | None
    warnings: list[str]

    @classmethod
    def from_result(cls, result: RefreshResult) -> "RefreshResultResponse":
        return cls(
            feed_id=result.feed_id,
            success=result.success,
            new_count=result.new_count,
            updated_count=result.updated_count,
            error=result.error,
            duration_ms=result.duration_ms,
            embeddings_generated=result.embeddings_generated,
            summaries_generated=result.summaries_generated,
            cleanup=CleanupResponse.from_result(result.cleanup_result) if result.cleanup_result else None,
            warnings=result.warnings,
        )


class BatchRefreshResponse(BaseModel):
    total_feeds: int
    successful: int
    failed: int
    total_new_articles: int
    total_updated_articles: int
    average_duration_ms: int
    errors: list[dict]
    results: list[RefreshResultResponse]

    @classmethod
    def from_result(cls, batch: BatchRefreshResult) -> "BatchRefreshResponse":
        stats = batch.stats
        return cls(
            total_feeds=stats.total_feeds,
            successful=stats.successful,
            failed=stats.failed,
            total_new_articles=stats.total_new_articles,
            total_updated_articles=stats.total_updated_articles,
            average_duration_ms=stats.average_duration_ms,
            errors=stats.errors,
            results=[RefreshResultResponse.from_result(r) for r in batch.results],
        )


class CleanupRequest(BaseModel):
    feed_id: int | None = None
    user_id: int | None = None
    max_age_days: int | None = Field(default=None, ge=1, le=365)
    max_articles_per_feed: int | None = Field(default=None, ge=50, le=5000)
    preserve_starred: bool = True


# ─────────────────────────────────────────────────────────────
# Feed and Settings Schemas
# ─────────────────────────────────────────────────────────────

class FeedResponse(BaseModel):
    id: int
    url: str
    name: str
    last_fetched: str | None
    error_count: int
    last_error: str | None
    article_count: int

    @classmethod
    def from_db(cls, feed: DBFeed) -> "FeedResponse":
        return cls(
            id=feed.id,
            url=feed.url,
            name=feed.name,
            last_fetched=_iso(feed.last_fetched),
            error_count=feed.error_count,
            last_error=feed.last_error,
            article_count=feed.article_count,
        )


class FeedSettingsRequest(BaseModel):
    """One override tier; omitted or null fields inherit from the tier below."""
    refresh_interval: int | None = None
    max_articles_per_feed: int | None = None
    max_article_age: int | None = None
    extraction_method: str | None = None
    merge_strategy: str | None = None
    extraction_timeout: int | None = None
    custom_selector: str | None = None
    headers: dict[str, str] | None = None
    cookies: dict[str, str] | None = None
    summarization_enabled: bool | None = None
    summary_min_content_length: int | None = None
    include_key_points: bool | None = None
    include_topics: bool | None = None

    def to_override(self) -> FeedSettingsOverride:
        return FeedSettingsOverride.from_dict(self.model_dump(exclude_none=True))


class EffectiveSettingsResponse(BaseModel):
    feed_id: int
    user_id: int | None
    refresh_interval: int
    max_articles_per_feed: int
    max_article_age: int
    extraction_method: str
    merge_strategy: str
    extraction_timeout: int
    custom_selector: str | None
    headers: dict[str, str]
    cookies: dict[str, str]
    summarization_enabled: bool
    summary_min_content_length: int
    include_key_points: bool
    include_topics: bool
    sources: dict[str, str]

    @classmethod
    def from_settings(
        cls,
        feed_id: int,
        user_id: int | None,
        settings: EffectiveFeedSettings
    ) -> "EffectiveSettingsResponse":
        return cls(
            feed_id=feed_id,
            user_id=user_id,
            refresh_interval=settings.refresh_interval,
            max_articles_per_feed=settings.max_articles_per_feed,
            max_article_age=settings.max_article_age,
            extraction_method=settings.extraction_method,
            merge_strategy=settings.merge_strategy,
            extraction_timeout=settings.extraction_timeout,
            custom_selector=settings.custom_selector,
            # Header and cookie values may carry credentials
            headers={k: "***" for k in settings.headers},
            cookies={k: "***" for k in settings.cookies},
            summarization_enabled=settings.summarization_enabled,
            summary_min_content_length=settings.summary_min_content_length,
            include_key_points=settings.include_key_points,
            include_topics=settings.include_topics,
            sources=settings.sources,
        )


class EnrichmentTogglesResponse(BaseModel):
    embedding_auto_generate: bool
    summary_auto_generate: bool


class EnrichmentTogglesRequest(BaseModel):
    embedding_auto_generate: bool | None = None
    summary_auto_generate: bool | None = None


# ─────────────────────────────────────────────────────────────
# Cost Schemas
# ─────────────────────────────────────────────────────────────

class CostEntryResponse(BaseModel):
    id: int
    operation: str
    provider: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    user_id: int | None
    article_id: int | None
    created_at: str

    @classmethod
    def from_db(cls, entry: DBCostEntry) -> "CostEntryResponse":
        return cls(
            id=entry.id,
            operation=entry.operation,
            provider=entry.provider,
            model=entry.model,
            prompt_tokens=entry.prompt_tokens,
            completion_tokens=entry.completion_tokens,
            total_tokens=entry.total_tokens,
            cost=entry.cost,
            user_id=entry.user_id,
            article_id=entry.article_id,
            created_at=entry.created_at.isoformat(),
        )


class CostBucket(BaseModel):
    tokens: int
    cost: float
    count: int


class CostStatsResponse(BaseModel):
    operation: str
    total_tokens: int
    total_cost: float
    entries_count: int
    by_provider: dict[str, CostBucket]
    by_model: dict[str, CostBucket]
    by_user: dict[str, CostBucket]
    last_24_hours: CostBucket
    last_7_days: CostBucket
    last_30_days: CostBucket
    recent_entries: list[CostEntryResponse]

    @classmethod
    def from_stats(cls, stats: dict) -> "CostStatsResponse":
        return cls(
            **{k: v for k, v in stats.items() if k != "recent_entries"},
            recent_entries=[CostEntryResponse.from_db(e) for e in stats["recent_entries"]],
        )


class EmbeddingStatsResponse(BaseModel):
    total: int
    with_embedding: int
    without_embedding: int
    percentage: float
