"""
Service layer for the ingestion pipeline.

Services receive their collaborators via constructor injection. The
long-lived ones (refresh, cleanup, embeddings) are owned by the scheduler;
the stateless ones are built per request through the factories below.
"""

from typing import Annotated

from fastapi import Depends

from ..config import get_db
from ..database import Database

from .article_service import ArticleService, UpsertResult
from .batch_refresh import BatchRefresher, BatchRefreshResult, RefreshStats, get_refresh_stats
from .cleanup_service import ArticleCleanupService, CleanupResult
from .cost_tracker import CostTracker
from .embedding_service import EmbeddingBatchResult, EmbeddingService
from .feed_refresh import FeedRefresher, RefreshResult, RefreshStep
from .settings_cascade import (
    EffectiveFeedSettings,
    FeedSettingsOverride,
    SettingsResolver,
    resolve_settings,
    validate_settings,
)
from .summarization_service import SummarizationResult, SummarizationService

__all__ = [
    # Services
    "ArticleService",
    "ArticleCleanupService",
    "BatchRefresher",
    "CostTracker",
    "EmbeddingService",
    "FeedRefresher",
    "SettingsResolver",
    "SummarizationService",
    # Results
    "BatchRefreshResult",
    "CleanupResult",
    "EmbeddingBatchResult",
    "RefreshResult",
    "RefreshStats",
    "RefreshStep",
    "SummarizationResult",
    "UpsertResult",
    # Settings cascade
    "EffectiveFeedSettings",
    "FeedSettingsOverride",
    "resolve_settings",
    "validate_settings",
    "get_refresh_stats",
    # Dependency factories
    "get_cost_tracker",
    "get_settings_resolver",
    "CostTrackerDep",
    "SettingsResolverDep",
]


def get_cost_tracker(db: Annotated[Database, Depends(get_db)]) -> CostTracker:
    """Dependency to get CostTracker instance."""
    return CostTracker(db)


def get_settings_resolver(db: Annotated[Database, Depends(get_db)]) -> SettingsResolver:
    """Dependency to get SettingsResolver instance."""
    return SettingsResolver(db)


CostTrackerDep = Annotated[CostTracker, Depends(get_cost_tracker)]
SettingsResolverDep = Annotated[SettingsResolver, Depends(get_settings_resolver)]
