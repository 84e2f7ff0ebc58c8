"""
Batch refresh: selects due feeds and refreshes them with bounded concurrency.

A feed is due when it was never fetched or when the time since its last
fetch is at least its effective refresh interval. Feeds whose consecutive
error count reached the quarantine threshold are never selected.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..database import Database
from .feed_refresh import FeedRefresher, RefreshResult
from .settings_cascade import EffectiveFeedSettings, FeedSettingsOverride, SettingsResolver, resolve_settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5
DEFAULT_ERROR_THRESHOLD = 10


@dataclass
class RefreshStats:
    total_feeds: int = 0
    successful: int = 0
    failed: int = 0
    total_new_articles: int = 0
    total_updated_articles: int = 0
    average_duration_ms: int = 0
    errors: list[dict] = field(default_factory=list)


@dataclass
class BatchRefreshResult:
    results: list[RefreshResult] = field(default_factory=list)
    stats: RefreshStats = field(default_factory=RefreshStats)
    feed_users: dict[int, set[int]] = field(default_factory=dict)


def is_due(last_fetched: datetime | None, settings: EffectiveFeedSettings, now: datetime) -> bool:
    if last_fetched is None:
        return True
    elapsed_ms = (now - last_fetched).total_seconds() * 1000
    return elapsed_ms >= settings.refresh_interval_ms


def get_refresh_stats(results: list[RefreshResult]) -> RefreshStats:
    """Reduce refresh results to batch statistics. Pure."""
    stats = RefreshStats(total_feeds=len(results))
    if not results:
        return stats

    for result in results:
        if result.success:
            stats.successful += 1
        else:
            stats.failed += 1
            stats.errors.append({"feed_id": result.feed_id, "error": result.error})
        stats.total_new_articles += result.new_count
        stats.total_updated_articles += result.updated_count

    stats.average_duration_ms = round(sum(r.duration_ms for r in results) / len(results))
    return stats


class BatchRefresher:
    """Drives FeedRefresher across many feeds."""

    def __init__(
        self,
        db: Database,
        refresher: FeedRefresher,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        error_threshold: int = DEFAULT_ERROR_THRESHOLD,
    ):
        self.db = db
        self.refresher = refresher
        self.max_concurrent = max_concurrent
        self.error_threshold = error_threshold
        self.resolver = SettingsResolver(db)

    def get_feeds_to_refresh(self, now: datetime | None = None) -> dict[int, set[int]]:
        """
        Map each due feed to the users whose cascade made it due.

        Feeds without subscribers are checked against their own settings and
        map to an empty set.
        """
        now = now or datetime.now()
        due: dict[int, set[int]] = {}

        for sub in self.db.subscriptions.get_all_subscriptions(max_error_count=self.error_threshold):
            settings = self.resolver.for_subscription(sub)
            if is_due(sub.feed_last_fetched, settings, now):
                due.setdefault(sub.feed_id, set()).add(sub.user_id)

        for feed in self.db.feeds.get_without_subscribers(self.error_threshold):
            settings = resolve_settings(source=FeedSettingsOverride.from_dict(feed.settings))
            if is_due(feed.last_fetched, settings, now):
                due.setdefault(feed.id, set())

        return due

    def get_user_feeds_to_refresh(self, user_id: int, now: datetime | None = None) -> list[int]:
        """Due, non-quarantined feeds of one user."""
        now = now or datetime.now()
        return [
            sub.feed_id
            for sub in self.db.subscriptions.get_user_subscriptions(
                user_id, max_error_count=self.error_threshold
            )
            if is_due(sub.feed_last_fetched, self.resolver.for_subscription(sub), now)
        ]

    async def refresh_feeds(
        self,
        feed_ids: list[int],
        max_concurrent: int | None = None,
        user_id: int | None = None,
    ) -> list[RefreshResult]:
        """
        Refresh feeds in sequential chunks of `max_concurrent`.

        An exception escaping one refresh becomes a failed result for that
        feed; its siblings are not cancelled.
        """
        size = max(1, max_concurrent or self.max_concurrent)
        results: list[RefreshResult] = []

        for start in range(0, len(feed_ids), size):
            chunk = feed_ids[start:start + size]
            outcomes = await asyncio.gather(
                *(self.refresher.refresh_feed(feed_id, user_id) for feed_id in chunk),
                return_exceptions=True,
            )
            for feed_id, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Unexpected error refreshing feed {feed_id}: {outcome}")
                    outcome = RefreshResult(feed_id=feed_id, error=str(outcome) or type(outcome).__name__)
                results.append(outcome)

        return results

    get_refresh_stats = staticmethod(get_refresh_stats)

    async def refresh_all_due(self, now: datetime | None = None) -> BatchRefreshResult:
        """Refresh every due feed once, regardless of how many users share it."""
        feed_users = self.get_feeds_to_refresh(now)
        if not feed_users:
            logger.info("No feeds due for refresh")
            return BatchRefreshResult()

        logger.info(f"Refreshing {len(feed_users)} due feeds")
        results = await self.refresh_feeds(list(feed_users))
        return BatchRefreshResult(
            results=results,
            stats=get_refresh_stats(results),
            feed_users=feed_users,
        )

    async def refresh_user_feeds(self, user_id: int, now: datetime | None = None) -> BatchRefreshResult:
        """Refresh one user's due feeds under that user's cascade."""
        feed_ids = self.get_user_feeds_to_refresh(user_id, now)
        results = await self.refresh_feeds(feed_ids, user_id=user_id)
        return BatchRefreshResult(
            results=results,
            stats=get_refresh_stats(results),
            feed_users={feed_id: {user_id} for feed_id in feed_ids},
        )
