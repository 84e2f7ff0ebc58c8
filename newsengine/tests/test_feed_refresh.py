"""
Tests for the single-feed refresh pipeline.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeEmbeddingProvider, make_candidate, make_parsed_feed

from newsengine.config import config
from newsengine.database import Database
from newsengine.exceptions import FeedFetchError
from newsengine.extraction import ExtractionResult
from newsengine.services import EmbeddingService, FeedRefresher, SummarizationService
from newsengine.services.feed_refresh import FEED_NOT_FOUND
from newsengine.summarizer import Summary


class TestFeedRefresher:
    """Tests for FeedRefresher.refresh_feed."""

    @pytest.mark.asyncio
    async def test_successful_refresh(self, test_db, feed_id, feed_parser):
        result = await FeedRefresher(test_db, feed_parser).refresh_feed(feed_id)

        assert result.success is True
        assert result.error is None
        assert result.new_count == 2
        assert result.updated_count == 0
        assert result.warnings == []
        assert result.cleanup_result is not None
        feed = test_db.get_feed(feed_id)
        assert feed.last_fetched is not None
        assert feed.error_count == 0

    @pytest.mark.asyncio
    async def test_second_refresh_finds_nothing_new(self, test_db, feed_id, feed_parser):
        refresher = FeedRefresher(test_db, feed_parser)
        await refresher.refresh_feed(feed_id)
        result = await refresher.refresh_feed(feed_id)

        assert result.success is True
        assert result.new_count == 0
        assert test_db.articles.count(feed_id) == 2

    @pytest.mark.asyncio
    async def test_missing_feed(self, test_db, feed_parser):
        result = await FeedRefresher(test_db, feed_parser).refresh_feed(404)
        assert result.success is False
        assert result.error == FEED_NOT_FOUND
        feed_parser.parse_feed_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_failure_is_fatal(self, test_db, feed_id, feed_parser):
        """A fetch error should stop the pipeline and count against the feed."""
        feed_parser.parse_feed_url.side_effect = FeedFetchError("HTTP 503 fetching feed")

        result = await FeedRefresher(test_db, feed_parser).refresh_feed(feed_id)

        assert result.success is False
        assert result.error == "HTTP 503 fetching feed"
        assert result.cleanup_result is None
        feed = test_db.get_feed(feed_id)
        assert feed.error_count == 1
        assert feed.last_error == "HTTP 503 fetching feed"
        assert feed.last_fetched is None
        assert test_db.articles.count(feed_id) == 0

    @pytest.mark.asyncio
    async def test_success_clears_error_count(self, test_db, feed_id, feed_parser):
        for _ in range(3):
            test_db.record_feed_error(feed_id, "timeout")

        result = await FeedRefresher(test_db, feed_parser).refresh_feed(feed_id)

        assert result.success
        feed = test_db.get_feed(feed_id)
        assert feed.error_count == 0
        assert feed.last_error is None

    @pytest.mark.asyncio
    async def test_extraction_failure_is_not_fatal(self, test_db, feed_parser):
        feed_id = test_db.add_feed(
            "https://example.com/full.xml", "Full", settings={"extraction_method": "readability"}
        )
        extractor = MagicMock()
        extractor.extract_content = AsyncMock(side_effect=RuntimeError("parser crashed"))

        result = await FeedRefresher(test_db, feed_parser, extractor=extractor).refresh_feed(feed_id)

        assert result.success is True
        assert result.new_count == 2
        assert result.warnings == []
        article = test_db.articles.get_by_url("https://example.com/articles/2")
        assert article.content == "<p>Body of article 2.</p>"

    @pytest.mark.asyncio
    async def test_extraction_error_only_affects_its_item(self, test_db, feed_parser):
        """An item whose extraction raises keeps its feed body; later items are still extracted."""
        feed_id = test_db.add_feed(
            "https://example.com/full.xml", "Full", settings={"extraction_method": "readability"}
        )
        extractor = MagicMock()
        extractor.extract_content = AsyncMock(side_effect=[
            UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
            ExtractionResult(success=True, method="readability", content="Full page text"),
        ])

        result = await FeedRefresher(test_db, feed_parser, extractor=extractor).refresh_feed(feed_id)

        assert result.success is True
        assert extractor.extract_content.await_count == 2
        first = test_db.articles.get_by_url("https://example.com/articles/1")
        second = test_db.articles.get_by_url("https://example.com/articles/2")
        assert first.content == "<p>Body of article 1.</p>"
        assert second.content == "Full page text"

    @pytest.mark.asyncio
    async def test_extraction_merges_content(self, test_db, feed_parser):
        feed_id = test_db.add_feed(
            "https://example.com/full.xml",
            "Full",
            settings={"extraction_method": "readability", "merge_strategy": "append"},
        )
        feed_parser.parse_feed_url.return_value = make_parsed_feed([make_candidate(1)])
        extractor = MagicMock()
        extractor.extract_content = AsyncMock(return_value=ExtractionResult(
            success=True, method="readability", content="Full page text", author="Jane Writer"
        ))

        await FeedRefresher(test_db, feed_parser, extractor=extractor).refresh_feed(feed_id)

        article = test_db.articles.get_by_url("https://example.com/articles/1")
        assert article.content == "<p>Body of article 1.</p>\n\nFull page text"
        assert article.author == "Jane Writer"

    @pytest.mark.asyncio
    async def test_failed_extraction_keeps_feed_content(self, test_db, feed_parser):
        feed_id = test_db.add_feed(
            "https://example.com/full.xml", "Full", settings={"extraction_method": "readability"}
        )
        feed_parser.parse_feed_url.return_value = make_parsed_feed([make_candidate(1)])
        extractor = MagicMock()
        extractor.extract_content = AsyncMock(return_value=ExtractionResult(
            success=False, method="readability", error="HTTP 403"
        ))

        result = await FeedRefresher(test_db, feed_parser, extractor=extractor).refresh_feed(feed_id)

        assert result.success
        assert result.warnings == []
        article = test_db.articles.get_by_url("https://example.com/articles/1")
        assert article.content == "<p>Body of article 1.</p>"

    @pytest.mark.asyncio
    async def test_rss_feeds_skip_extraction(self, test_db, feed_id, feed_parser):
        extractor = MagicMock()
        extractor.extract_content = AsyncMock()

        await FeedRefresher(test_db, feed_parser, extractor=extractor).refresh_feed(feed_id)
        extractor.extract_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_embeds_new_articles_when_enabled(self, test_db, feed_id, feed_parser):
        test_db.set_setting(Database.EMBEDDING_AUTO_GENERATE_KEY, "true")
        embeddings = EmbeddingService(test_db, FakeEmbeddingProvider(), pacing_delay=0)

        result = await FeedRefresher(test_db, feed_parser, embedding_service=embeddings).refresh_feed(feed_id)

        assert result.embeddings_generated == 2
        assert test_db.articles.get_embedding_counts() == (2, 2)

    @pytest.mark.asyncio
    async def test_embedding_disabled_by_toggle(self, test_db, feed_id, feed_parser):
        test_db.set_setting(Database.EMBEDDING_AUTO_GENERATE_KEY, "false")
        embeddings = EmbeddingService(test_db, FakeEmbeddingProvider(), pacing_delay=0)

        result = await FeedRefresher(test_db, feed_parser, embedding_service=embeddings).refresh_feed(feed_id)

        assert result.embeddings_generated == 0
        assert test_db.articles.get_embedding_counts() == (2, 0)

    @pytest.mark.asyncio
    async def test_embedding_failure_is_not_fatal(self, test_db, feed_id, feed_parser):
        test_db.set_setting(Database.EMBEDDING_AUTO_GENERATE_KEY, "true")
        embeddings = EmbeddingService(test_db, None)

        result = await FeedRefresher(test_db, feed_parser, embedding_service=embeddings).refresh_feed(feed_id)

        assert result.success is True
        assert result.warnings == ["embed: No embedding provider configured"]

    @pytest.mark.asyncio
    async def test_summarizes_when_enabled(self, test_db, feed_parser, monkeypatch):
        monkeypatch.setattr(config, "SUMMARY_AUTO_GENERATE", True)
        feed_id = test_db.add_feed(
            "https://example.com/s.xml",
            "S",
            settings={"summarization_enabled": True, "summary_min_content_length": 0},
        )
        summarizer = MagicMock()
        summarizer.provider.name = "anthropic"
        summarizer.summarize_async = AsyncMock(return_value=Summary(
            summary="A short summary.", model="claude-haiku-4-5", input_tokens=100, output_tokens=20
        ))
        summaries = SummarizationService(test_db, summarizer)

        result = await FeedRefresher(test_db, feed_parser, summarization_service=summaries).refresh_feed(feed_id)

        assert result.summaries_generated == 2
        assert summarizer.summarize_async.await_count == 2
        assert len(test_db.costs.get_entries(operation="summarization")) == 2

    @pytest.mark.asyncio
    async def test_upsert_failure_is_fatal(self, test_db, feed_id, feed_parser):
        refresher = FeedRefresher(test_db, feed_parser)
        refresher.articles = MagicMock()
        refresher.articles.upsert_articles.side_effect = RuntimeError("disk full")

        result = await refresher.refresh_feed(feed_id)

        assert result.success is False
        assert result.error == "disk full"
        assert test_db.get_feed(feed_id).error_count == 1

    @pytest.mark.asyncio
    async def test_cleanup_runs_with_feed_settings(self, test_db, feed_parser):
        feed_id = test_db.add_feed("https://example.com/c.xml", "C", settings={"max_articles_per_feed": 50})
        feed_parser.parse_feed_url.return_value = make_parsed_feed(
            [make_candidate(n) for n in range(60)]
        )

        result = await FeedRefresher(test_db, feed_parser).refresh_feed(feed_id)

        assert result.new_count == 60
        assert result.cleanup_result.deleted == 10
        assert test_db.articles.count(feed_id) == 50
