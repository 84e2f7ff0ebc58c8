"""
Retention: removes articles past their feed's age or count limits.

Two rules are evaluated per feed and their union is deleted:
- age: COALESCE(published_at, created_at) older than max_article_age days
- count: everything beyond the newest max_articles_per_feed articles

Starred articles are never candidates while preserve_starred is on.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..database import Database
from .settings_cascade import SYSTEM, SettingsResolver

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    deleted: int = 0
    preserved: int = 0  # Starred articles the age rule would have removed
    by_age: int = 0
    by_count: int = 0

    def add(self, other: "CleanupResult"):
        self.deleted += other.deleted
        self.preserved += other.preserved
        self.by_age += other.by_age
        self.by_count += other.by_count


class ArticleCleanupService:
    """Applies retention limits to one feed, one user's feeds or every feed."""

    def __init__(
        self,
        db: Database,
        default_max_age_days: int = 90,
        default_max_articles: int = 500,
    ):
        self.db = db
        self.resolver = SettingsResolver(db)
        self.default_max_age_days = default_max_age_days
        self.default_max_articles = default_max_articles

    def cleanup(
        self,
        feed_id: int | None = None,
        user_id: int | None = None,
        max_age_days: int | None = None,
        max_articles_per_feed: int | None = None,
        preserve_starred: bool = True,
        now: datetime | None = None,
    ) -> CleanupResult:
        """
        Run retention and return what was removed.

        Explicit limits win. Otherwise each feed's effective settings are used
        (the user's cascade when `user_id` is given), falling back to the
        service defaults when nothing above the system tier set a value.
        Running it twice in a row deletes nothing the second time.
        """
        now = now or datetime.now()
        total = CleanupResult()

        for target in self._target_feeds(feed_id, user_id):
            age_days, keep = self._limits_for(target, user_id, max_age_days, max_articles_per_feed)
            result = self._cleanup_feed(target, age_days, keep, preserve_starred, now)
            if result.deleted:
                logger.info(
                    f"Feed {target}: deleted {result.deleted} articles "
                    f"({result.by_age} by age, {result.by_count} by count)"
                )
            total.add(result)

        return total

    def _target_feeds(self, feed_id: int | None, user_id: int | None) -> list[int]:
        if feed_id is not None:
            return [feed_id] if self.db.get_feed(feed_id) else []
        if user_id is not None:
            return [sub.feed_id for sub in self.db.subscriptions.get_user_subscriptions(user_id)]
        return [feed.id for feed in self.db.get_feeds()]

    def _limits_for(
        self,
        feed_id: int,
        user_id: int | None,
        max_age_days: int | None,
        max_articles: int | None,
    ) -> tuple[int, int]:
        if max_age_days is not None and max_articles is not None:
            return max_age_days, max_articles

        effective = self.resolver.for_feed(feed_id, user_id)
        if max_age_days is None:
            max_age_days = (
                self.default_max_age_days
                if effective.sources["max_article_age"] == SYSTEM
                else effective.max_article_age
            )
        if max_articles is None:
            max_articles = (
                self.default_max_articles
                if effective.sources["max_articles_per_feed"] == SYSTEM
                else effective.max_articles_per_feed
            )
        return max_age_days, max_articles

    def _cleanup_feed(
        self,
        feed_id: int,
        max_age_days: int,
        keep: int,
        preserve_starred: bool,
        now: datetime,
    ) -> CleanupResult:
        cutoff = now - timedelta(days=max_age_days)
        articles = self.db.articles

        by_age = set(articles.get_ids_older_than(feed_id, cutoff, exclude_starred=preserve_starred))
        by_count = [
            article_id
            for article_id in articles.get_ids_beyond_limit(feed_id, keep, exclude_starred=preserve_starred)
            if article_id not in by_age
        ]
        preserved = articles.count_starred_older_than(feed_id, cutoff) if preserve_starred else 0

        deleted = articles.delete_many(sorted(by_age) + by_count)
        return CleanupResult(
            deleted=deleted,
            preserved=preserved,
            by_age=len(by_age),
            by_count=len(by_count),
        )
