"""
Database facade - provides unified access to all repositories.

Services may use the delegating methods below or reach the repositories
directly through the `feeds`, `articles`, `subscriptions`, `job_runs`,
`costs` and `settings` attributes.
"""

from datetime import datetime
from pathlib import Path

from .connection import DatabaseConnection
from .article_repository import ArticleRepository
from .cost_repository import CostRepository
from .feed_repository import FeedRepository
from .job_run_repository import JobRunRepository
from .settings_repository import SettingsRepository
from .subscription_repository import SubscriptionRepository
from .models import DBArticle, DBFeed, DBJobRun


class Database:
    """
    Unified database access facade.

    Keeps route and service code independent of how tables are split
    across repositories.
    """

    # Keys for admin toggles stored in the settings table
    EMBEDDING_AUTO_GENERATE_KEY = "embedding_auto_generate"
    SUMMARY_AUTO_GENERATE_KEY = "summary_auto_generate"
    FEED_REFRESH_SCHEDULE_KEY = "feed_refresh_schedule"
    CLEANUP_SCHEDULE_KEY = "cleanup_schedule"
    EMBEDDING_SCHEDULE_KEY = "embedding_schedule"

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.feeds = FeedRepository(self._connection)
        self.articles = ArticleRepository(self._connection)
        self.subscriptions = SubscriptionRepository(self._connection)
        self.job_runs = JobRunRepository(self._connection)
        self.costs = CostRepository(self._connection)
        self.settings = SettingsRepository(self._connection)

    def vacuum(self):
        self._connection.vacuum()

    # ─────────────────────────────────────────────────────────────
    # Feed operations (delegated to FeedRepository)
    # ─────────────────────────────────────────────────────────────

    def add_feed(self, url: str, name: str, settings: dict | None = None) -> int:
        return self.feeds.add(url, name, settings)

    def get_feed(self, feed_id: int) -> DBFeed | None:
        return self.feeds.get(feed_id)

    def get_feeds(self) -> list[DBFeed]:
        return self.feeds.get_all()

    def update_feed_fetched(self, feed_id: int, fetched_at: datetime | None = None):
        return self.feeds.mark_fetched(feed_id, fetched_at)

    def record_feed_error(self, feed_id: int, error: str):
        return self.feeds.record_error(feed_id, error)

    def reset_feed_errors(self, feed_id: int) -> bool:
        return self.feeds.reset_errors(feed_id)

    def delete_feed(self, feed_id: int):
        return self.feeds.delete(feed_id)

    # ─────────────────────────────────────────────────────────────
    # Article operations (delegated to ArticleRepository)
    # ─────────────────────────────────────────────────────────────

    def add_article(
        self,
        feed_id: int,
        url: str,
        title: str,
        guid: str | None = None,
        content: str | None = None,
        content_hash: str | None = None,
        excerpt: str | None = None,
        author: str | None = None,
        image_url: str | None = None,
        published_at: datetime | None = None,
    ) -> int | None:
        return self.articles.add(
            feed_id, url, title, guid, content, content_hash,
            excerpt, author, image_url, published_at
        )

    def get_article(self, article_id: int) -> DBArticle | None:
        return self.articles.get(article_id)

    def star_article(self, article_id: int, starred: bool = True):
        return self.articles.set_starred(article_id, starred)

    # ─────────────────────────────────────────────────────────────
    # Job runs (delegated to JobRunRepository)
    # ─────────────────────────────────────────────────────────────

    def get_job_history(self, job_name: str | None = None, limit: int = 50) -> list[DBJobRun]:
        return self.job_runs.get_history(job_name, limit)

    # ─────────────────────────────────────────────────────────────
    # Admin toggles (settings table overrides environment defaults)
    # ─────────────────────────────────────────────────────────────

    def get_bool_setting(self, key: str, default: bool) -> bool:
        return self.settings.get_bool(key, default)

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        return self.settings.get(key, default)

    def set_setting(self, key: str, value: str):
        return self.settings.set(key, value)
