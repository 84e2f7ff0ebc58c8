"""
Tests for article identity and merge rules.
"""

from datetime import timedelta

from conftest import make_candidate

from newsengine.services.deduplication import (
    are_near_duplicates,
    calculate_similarity,
    compute_content_hash,
    deduplicate_candidates,
    find_existing_article,
    merge_content,
    should_update,
)


class TestContentHash:
    """Tests for compute_content_hash."""

    def test_whitespace_insensitive(self):
        assert compute_content_hash("Hello   world\n\n") == compute_content_hash(" Hello world")

    def test_different_content(self):
        assert compute_content_hash("one") != compute_content_hash("two")

    def test_empty(self):
        assert compute_content_hash(None) is None
        assert compute_content_hash("") is None
        assert compute_content_hash("   \n ") is None


class TestFindExistingArticle:
    """Tests for the guid -> url -> content hash lookup order."""

    def _store(self, db, feed_id, candidate):
        return db.add_article(
            feed_id=feed_id,
            url=candidate.link,
            title=candidate.title,
            guid=candidate.guid,
            content=candidate.content,
            content_hash=compute_content_hash(candidate.content),
        )

    def test_match_by_guid(self, test_db, feed_id):
        article_id = self._store(test_db, feed_id, make_candidate(1))
        incoming = make_candidate(1, link="https://example.com/moved")
        found = find_existing_article(test_db.articles, feed_id, incoming)
        assert found.id == article_id

    def test_match_by_url_across_feeds(self, test_db, feed_id):
        other_feed = test_db.add_feed("https://other.example.com/rss", "Other")
        article_id = self._store(test_db, other_feed, make_candidate(1))
        incoming = make_candidate(1, guid="different-guid")
        found = find_existing_article(test_db.articles, feed_id, incoming)
        assert found.id == article_id

    def test_match_by_content_hash_without_guid(self, test_db, feed_id):
        article_id = self._store(test_db, feed_id, make_candidate(1, guid=None))
        incoming = make_candidate(1, guid=None, link="https://example.com/other-url")
        found = find_existing_article(test_db.articles, feed_id, incoming)
        assert found.id == article_id

    def test_content_hash_not_used_when_guid_present(self, test_db, feed_id):
        self._store(test_db, feed_id, make_candidate(1, guid=None))
        incoming = make_candidate(1, guid="new-guid", link="https://example.com/other-url")
        assert find_existing_article(test_db.articles, feed_id, incoming) is None

    def test_new_article(self, test_db, feed_id):
        assert find_existing_article(test_db.articles, feed_id, make_candidate(5)) is None


class TestShouldUpdate:
    """Tests for change detection."""

    def _stored(self, test_db, feed_id, candidate):
        article_id = test_db.add_article(
            feed_id=feed_id,
            url=candidate.link,
            title=candidate.title,
            guid=candidate.guid,
            content=candidate.content,
            content_hash=compute_content_hash(candidate.content),
            published_at=candidate.published_at,
        )
        return test_db.get_article(article_id)

    def test_unchanged(self, test_db, feed_id):
        candidate = make_candidate(1)
        existing = self._stored(test_db, feed_id, candidate)
        assert not should_update(existing, candidate, compute_content_hash(candidate.content))

    def test_content_changed(self, test_db, feed_id):
        existing = self._stored(test_db, feed_id, make_candidate(1))
        changed = make_candidate(1, content="<p>Corrected body.</p>")
        assert should_update(existing, changed, compute_content_hash(changed.content))

    def test_title_changed(self, test_db, feed_id):
        existing = self._stored(test_db, feed_id, make_candidate(1))
        changed = make_candidate(1, title="Updated headline")
        assert should_update(existing, changed, compute_content_hash(changed.content))

    def test_small_timestamp_drift_ignored(self, test_db, feed_id):
        candidate = make_candidate(1)
        existing = self._stored(test_db, feed_id, candidate)
        drifted = make_candidate(1, published_at=candidate.published_at + timedelta(seconds=30))
        assert not should_update(existing, drifted, compute_content_hash(drifted.content))

    def test_large_timestamp_change(self, test_db, feed_id):
        candidate = make_candidate(1)
        existing = self._stored(test_db, feed_id, candidate)
        moved = make_candidate(1, published_at=candidate.published_at + timedelta(hours=2))
        assert should_update(existing, moved, compute_content_hash(moved.content))


class TestMergeContent:
    """Tests for merge strategies."""

    def test_replace(self):
        assert merge_content("feed", "page", "replace") == "page"

    def test_prepend(self):
        assert merge_content("feed", "page", "prepend") == "page\n\nfeed"

    def test_append(self):
        assert merge_content("feed", "page", "append") == "feed\n\npage"

    def test_missing_side(self):
        assert merge_content("feed", None, "append") == "feed"
        assert merge_content(None, "page", "prepend") == "page"
        assert merge_content(None, None) == ""


class TestBatchDedup:
    """Tests for within-fetch dedup and near-duplicate helpers."""

    def test_deduplicate_candidates(self):
        items = [make_candidate(1), make_candidate(1), make_candidate(2)]
        assert [c.guid for c in deduplicate_candidates(items)] == ["guid-1", "guid-2"]

    def test_similarity(self):
        text = "Markets rallied sharply today after the central bank held rates steady"
        assert calculate_similarity(text, text) == 1.0
        assert calculate_similarity(text, "Completely unrelated weather report") == 0.0
        assert calculate_similarity("", "") == 0.0

    def test_near_duplicates(self):
        a = "Markets rallied sharply today after the central bank held rates steady"
        b = "Markets rallied sharply today after the central bank held rates steady again"
        assert are_near_duplicates(a, b)
