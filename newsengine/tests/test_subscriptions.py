"""
Tests for users, categories and subscriptions.
"""

import pytest

from newsengine.services import SettingsResolver
from newsengine.services.settings_cascade import CATEGORY, SYSTEM


@pytest.fixture
def user_id(test_db):
    return test_db.subscriptions.get_or_create_user("reader@example.com")


class TestCategories:
    """Tests for category ordering and deletion."""

    def test_categories_in_sort_order(self, test_db, user_id):
        repo = test_db.subscriptions
        repo.add_category(user_id, "Later", sort_order=2)
        repo.add_category(user_id, "First", sort_order=1)
        repo.add_category(test_db.subscriptions.get_or_create_user("other@example.com"), "Theirs")

        assert [c.name for c in repo.get_categories(user_id)] == ["First", "Later"]

    def test_delete_category_keeps_subscription(self, test_db, user_id, feed_id):
        repo = test_db.subscriptions
        category_id = repo.add_category(user_id, "Tech", settings={"max_article_age": 7})
        subscription_id = repo.subscribe(user_id, feed_id)
        repo.assign_category(subscription_id, category_id)
        assert repo.get_subscription_category(subscription_id).id == category_id

        repo.delete_category(category_id)

        assert repo.get_categories(user_id) == []
        assert repo.get_subscription(user_id, feed_id) is not None
        assert repo.get_subscription_category(subscription_id) is None

    def test_deleted_category_leaves_cascade(self, test_db, user_id, feed_id):
        repo = test_db.subscriptions
        category_id = repo.add_category(user_id, "Tech", settings={"max_article_age": 7})
        repo.assign_category(repo.subscribe(user_id, feed_id), category_id)
        resolver = SettingsResolver(test_db)
        assert resolver.for_feed(feed_id, user_id).sources["max_article_age"] == CATEGORY

        repo.delete_category(category_id)

        settings = resolver.for_feed(feed_id, user_id)
        assert settings.max_article_age == 90
        assert settings.sources["max_article_age"] == SYSTEM


class TestSubscriptions:
    """Tests for subscribe/unsubscribe."""

    def test_subscribe_is_idempotent(self, test_db, user_id, feed_id):
        first = test_db.subscriptions.subscribe(user_id, feed_id)
        assert test_db.subscriptions.subscribe(user_id, feed_id) == first

    def test_unsubscribe(self, test_db, user_id, feed_id):
        repo = test_db.subscriptions
        repo.subscribe(user_id, feed_id)

        assert repo.unsubscribe(user_id, feed_id) is True
        assert repo.get_subscription(user_id, feed_id) is None
        assert repo.get_user_subscriptions(user_id) == []
        assert test_db.get_feed(feed_id) is not None
        assert repo.unsubscribe(user_id, feed_id) is False
