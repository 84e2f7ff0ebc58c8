"""
Tests for the cost ledger.
"""

from datetime import datetime, timedelta

import pytest

from newsengine.services import CostTracker
from newsengine.services.cost_tracker import (
    EMBEDDING,
    SUMMARIZATION,
    calculate_embedding_cost,
    calculate_summarization_cost,
)


class TestPricing:
    """Tests for cost estimation."""

    def test_embedding_cost(self):
        assert calculate_embedding_cost("text-embedding-3-small", 1000) == pytest.approx(0.00002)
        assert calculate_embedding_cost("text-embedding-3-large", 2000) == pytest.approx(0.00026)

    def test_local_provider_is_free(self):
        assert calculate_embedding_cost("nomic-embed-text", 10_000, provider="local") == 0.0
        assert calculate_summarization_cost("llama3", 1000, 1000, provider="ollama") == 0.0

    def test_summarization_cost(self):
        cost = calculate_summarization_cost("gpt-4o-mini", 1000, 1000)
        assert cost == pytest.approx(0.00075)

    def test_dated_model_uses_prefix(self):
        assert calculate_summarization_cost("gpt-4o-mini-2024-07-18", 1000, 0) == pytest.approx(0.00015)

    def test_unknown_model_default(self):
        assert calculate_summarization_cost("mystery", 1000, 1000) == pytest.approx(0.04)


class TestCostTracker:
    """Tests for ledger writes and aggregation."""

    def test_track_and_stats(self, test_db):
        tracker = CostTracker(test_db)
        tracker.track_embedding("openai", "text-embedding-3-small", 1000, user_id=1)
        tracker.track_embedding("openai", "text-embedding-3-small", 500, user_id=2)
        tracker.track_summarization("anthropic", "claude-haiku-4-5", 800, 200, user_id=1, article_id=5)

        stats = tracker.get_cost_stats(EMBEDDING)
        assert stats["entries_count"] == 2
        assert stats["total_tokens"] == 1500
        assert stats["by_user"]["1"]["count"] == 1
        assert stats["by_model"]["text-embedding-3-small"]["tokens"] == 1500
        assert stats["last_24_hours"]["count"] == 2
        assert len(stats["recent_entries"]) == 2

        summary_stats = tracker.get_cost_stats(SUMMARIZATION)
        assert summary_stats["entries_count"] == 1
        assert summary_stats["total_tokens"] == 1000
        assert summary_stats["by_provider"]["anthropic"]["count"] == 1

    def test_report_has_one_bucket_per_day(self, test_db):
        tracker = CostTracker(test_db)
        tracker.track_embedding("openai", "text-embedding-3-small", 1000)

        report = tracker.get_cost_report(EMBEDDING, days=7)

        assert len(report["daily"]) == 7
        assert report["entries_count"] == 1
        assert report["daily"][-1]["count"] == 1
        assert report["average_daily_cost"] == pytest.approx(report["total_cost"] / 7)

    def test_prune(self, test_db):
        tracker = CostTracker(test_db)
        tracker.track_embedding("openai", "text-embedding-3-small", 1000)

        assert tracker.prune(30, now=datetime.now() + timedelta(days=31)) == 1
        assert test_db.costs.get_entries() == []

    def test_prune_keeps_recent(self, test_db):
        tracker = CostTracker(test_db)
        tracker.track_embedding("openai", "text-embedding-3-small", 1000)
        assert tracker.prune(30) == 0
