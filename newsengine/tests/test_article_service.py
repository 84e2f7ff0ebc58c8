"""
Tests for upserting fetched candidates.
"""

from conftest import make_candidate

from newsengine.services import ArticleService


class TestUpsertArticles:
    """Tests for ArticleService.upsert_articles."""

    def test_inserts_new(self, test_db, feed_id):
        result = ArticleService(test_db).upsert_articles(feed_id, [make_candidate(1), make_candidate(2)])

        assert result.created == 2
        assert result.updated == 0
        assert len(result.article_ids) == 2
        assert test_db.articles.count(feed_id) == 2

    def test_second_pass_is_noop(self, test_db, feed_id):
        service = ArticleService(test_db)
        items = [make_candidate(1), make_candidate(2)]
        service.upsert_articles(feed_id, items)

        result = service.upsert_articles(feed_id, [make_candidate(1), make_candidate(2)])
        assert result.created == 0
        assert result.updated == 0
        assert result.skipped == 2
        assert result.article_ids == []

    def test_updates_changed_article(self, test_db, feed_id):
        service = ArticleService(test_db)
        first = service.upsert_articles(feed_id, [make_candidate(1)])

        result = service.upsert_articles(feed_id, [make_candidate(1, content="<p>Revised.</p>")])
        assert result.updated == 1
        article = test_db.get_article(first.article_ids[0])
        assert article.content == "<p>Revised.</p>"
        assert article.updated_at is not None

    def test_update_keeps_enrichment(self, test_db, feed_id):
        service = ArticleService(test_db)
        article_id = service.upsert_articles(feed_id, [make_candidate(1)]).article_ids[0]
        test_db.articles.update_summary(article_id, "Short summary")
        test_db.star_article(article_id)

        service.upsert_articles(feed_id, [make_candidate(1, title="New title")])
        article = test_db.get_article(article_id)
        assert article.title == "New title"
        assert article.summary == "Short summary"
        assert article.is_starred

    def test_skips_items_without_link(self, test_db, feed_id):
        result = ArticleService(test_db).upsert_articles(feed_id, [make_candidate(1, link="")])
        assert result.skipped == 1
        assert test_db.articles.count(feed_id) == 0

    def test_duplicates_within_fetch(self, test_db, feed_id):
        result = ArticleService(test_db).upsert_articles(feed_id, [make_candidate(1), make_candidate(1)])
        assert result.created == 1

    def test_whitespace_only_change_is_not_an_update(self, test_db, feed_id):
        service = ArticleService(test_db)
        article_id = service.upsert_articles(feed_id, [make_candidate(1)]).article_ids[0]

        result = service.upsert_articles(
            feed_id, [make_candidate(1, content="  <p>Body of article 1.</p>\n\n")]
        )
        assert result.created == 0
        assert result.updated == 0
        assert result.skipped == 1
        assert test_db.get_article(article_id).content == "<p>Body of article 1.</p>"
