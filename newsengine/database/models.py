"""
Database models - dataclasses for database entities.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class DBFeed:
    id: int
    url: str
    name: str
    last_fetched: datetime | None
    error_count: int = 0
    last_error: str | None = None
    settings: dict | None = None  # Extraction config and feed-level overrides
    created_at: datetime | None = None
    article_count: int = 0


@dataclass
class DBArticle:
    id: int
    feed_id: int
    url: str
    title: str
    guid: str | None
    content: str | None
    content_hash: str | None
    published_at: datetime | None
    created_at: datetime
    excerpt: str | None = None
    author: str | None = None
    image_url: str | None = None
    is_starred: bool = False
    updated_at: datetime | None = None

    # Enrichment
    summary: str | None = None
    key_points: list[str] | None = None
    topics: list[str] | None = None
    summarized_at: datetime | None = None
    embedding: list[float] | None = None
    embedding_model: str | None = None
    embedding_generated_at: datetime | None = None


@dataclass
class DBUser:
    id: int
    email: str
    name: str | None
    created_at: datetime | None = None


@dataclass
class DBCategory:
    id: int
    user_id: int
    name: str
    sort_order: int = 0
    settings: dict | None = None


@dataclass
class DBSubscription:
    """A user's subscription to a feed joined with the feed's refresh state."""
    id: int
    user_id: int
    feed_id: int
    custom_name: str | None
    settings: dict | None
    subscribed_at: datetime | None
    feed_last_fetched: datetime | None = None
    feed_error_count: int = 0
    feed_settings: dict | None = None


@dataclass
class DBJobRun:
    id: int
    job_name: str
    status: str  # RUNNING, SUCCESS, FAILED
    triggered_by: str  # SCHEDULER, MANUAL
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None
    stats: dict | None = None
    error: str | None = None
    logs: list[dict] = field(default_factory=list)


@dataclass
class DBCostEntry:
    id: int
    operation: str  # embedding, summarization
    provider: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    created_at: datetime
    user_id: int | None = None
    article_id: int | None = None
