"""
Database module - SQLite operations for feeds, articles, subscriptions and job history.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import (
    DBArticle,
    DBCategory,
    DBCostEntry,
    DBFeed,
    DBJobRun,
    DBSubscription,
    DBUser,
)
from .article_repository import ArticleRepository
from .cost_repository import CostRepository
from .feed_repository import FeedRepository
from .job_run_repository import JobRunRepository
from .settings_repository import SettingsRepository
from .subscription_repository import SubscriptionRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "DBArticle",
    "DBCategory",
    "DBCostEntry",
    "DBFeed",
    "DBJobRun",
    "DBSubscription",
    "DBUser",
    "ArticleRepository",
    "CostRepository",
    "FeedRepository",
    "JobRunRepository",
    "SettingsRepository",
    "SubscriptionRepository",
]
