"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .database import Database
    from .embeddings import EmbeddingProvider
    from .extraction import ContentExtractor
    from .feeds import FeedParser
    from .jobs.scheduler import Scheduler
    from .providers import LLMProvider
    from .summarizer import Summarizer

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/newsengine.db"))
    PORT: int = int(os.getenv("PORT", "5005"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Leave empty to disable API key auth (local development)
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")

    # Scheduled jobs
    ENABLE_CRON_JOBS: bool = _parse_bool(os.getenv("ENABLE_CRON_JOBS"), default=True)
    FEED_REFRESH_SCHEDULE: str = os.getenv("FEED_REFRESH_SCHEDULE", "*/30 * * * *")
    CLEANUP_SCHEDULE: str = os.getenv("CLEANUP_SCHEDULE", "0 3 * * *")
    EMBEDDING_SCHEDULE: str = os.getenv("EMBEDDING_SCHEDULE", "0 * * * *")
    ENABLE_EMBEDDING_JOB: bool = _parse_bool(os.getenv("ENABLE_EMBEDDING_JOB"), default=False)

    # Feed refresh
    MAX_CONCURRENT_FEEDS: int = int(os.getenv("MAX_CONCURRENT_FEEDS", "5"))
    FEED_ERROR_THRESHOLD: int = int(os.getenv("FEED_ERROR_THRESHOLD", "10"))
    FETCH_TIMEOUT: int = int(os.getenv("FETCH_TIMEOUT", "30"))  # seconds

    # Retention
    CLEANUP_MAX_AGE_DAYS: int = int(os.getenv("CLEANUP_MAX_AGE_DAYS", "90"))
    CLEANUP_MAX_ARTICLES_PER_FEED: int = int(os.getenv("CLEANUP_MAX_ARTICLES_PER_FEED", "500"))
    CLEANUP_PRESERVE_STARRED: bool = _parse_bool(os.getenv("CLEANUP_PRESERVE_STARRED"), default=True)
    VACUUM_THRESHOLD: int = int(os.getenv("VACUUM_THRESHOLD", "100"))

    # Embeddings
    # Provider: "openai" or "local" (any OpenAI-compatible server, e.g. Ollama)
    EMBEDDING_PROVIDER: str = os.getenv("EMBEDDING_PROVIDER", "openai")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_BASE_URL: str = os.getenv("EMBEDDING_BASE_URL", "")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
    EMBEDDING_AUTO_GENERATE: bool = _parse_bool(os.getenv("EMBEDDING_AUTO_GENERATE"), default=False)

    # LLM provider for summaries: "anthropic" or "openai"
    # If not set, uses the first available key in order: Anthropic > OpenAI
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "")
    SUMMARY_AUTO_GENERATE: bool = _parse_bool(os.getenv("SUMMARY_AUTO_GENERATE"), default=False)

    # Cost ledger
    COST_RETENTION_DAYS: int = int(os.getenv("COST_RETENTION_DAYS", "365"))

    @classmethod
    def has_llm_key(cls) -> bool:
        """Check if any LLM API key is configured."""
        return bool(cls.ANTHROPIC_API_KEY or cls.OPENAI_API_KEY)


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    feed_parser: "FeedParser | None" = None
    extractor: "ContentExtractor | None" = None
    embedding_provider: "EmbeddingProvider | None" = None
    provider: "LLMProvider | None" = None  # LLM provider instance
    summarizer: "Summarizer | None" = None
    scheduler: "Scheduler | None" = None


state = AppState()


def get_db() -> "Database":
    """Dependency to get database instance."""
    if not state.db:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return state.db


def get_scheduler() -> "Scheduler":
    """Dependency to get the job scheduler."""
    if not state.scheduler:
        raise HTTPException(status_code=500, detail="Scheduler not initialized")
    return state.scheduler
