"""
Pytest fixtures for newsengine tests.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from newsengine.config import state
from newsengine.database import Database
from newsengine.embeddings import EmbeddingProvider
from newsengine.embeddings.base import EmbeddingBatch
from newsengine.feeds import Candidate, ParsedFeed
from newsengine.jobs import Scheduler
from newsengine.server import app


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider: 10 tokens and a 3-dim vector per text."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return "text-embedding-3-small"

    def embed(self, texts: list[str]) -> EmbeddingBatch:
        self.calls.append(texts)
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        return EmbeddingBatch(
            embeddings=[[0.1, 0.2, 0.3] for _ in texts],
            total_tokens=10 * len(texts),
            model=self.model,
        )


def make_candidate(n: int, **overrides) -> Candidate:
    """Build a feed item with stable guid/link derived from n."""
    values = {
        "title": f"Article {n}",
        "link": f"https://example.com/articles/{n}",
        "content": f"<p>Body of article {n}.</p>",
        "guid": f"guid-{n}",
        "published_at": datetime.now().replace(microsecond=0) - timedelta(hours=1),
    }
    values.update(overrides)
    return Candidate(**values)


def make_parsed_feed(items: list[Candidate], url: str = "https://example.com/feed.xml") -> ParsedFeed:
    return ParsedFeed(url=url, title="Example", description=None, items=items)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def feed_id(test_db):
    """A single feed with no articles."""
    return test_db.add_feed("https://example.com/feed.xml", "Example Feed")


@pytest.fixture
def feed_parser():
    """Parser double whose fetch result tests can configure."""
    parser = MagicMock()
    parser.parse_feed_url = AsyncMock(return_value=make_parsed_feed([make_candidate(1), make_candidate(2)]))
    return parser


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def scheduler(test_db, feed_parser):
    """Scheduler facade with a mocked timer backend; timers never fire."""
    return Scheduler(test_db, feed_parser, scheduler=MagicMock(running=False))


@pytest.fixture
def client(test_db, scheduler, feed_parser):
    """Create a test client with isolated database and scheduler."""
    # Store original state
    original_db = state.db
    original_feed_parser = state.feed_parser
    original_scheduler = state.scheduler
    original_summarizer = state.summarizer
    original_embedding_provider = state.embedding_provider

    state.db = test_db
    state.feed_parser = feed_parser
    state.scheduler = scheduler
    state.summarizer = None  # Disable for tests (requires API key)
    state.embedding_provider = None

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    # Restore original state
    state.db = original_db
    state.feed_parser = original_feed_parser
    state.scheduler = original_scheduler
    state.summarizer = original_summarizer
    state.embedding_provider = original_embedding_provider
