"""
Subscription repository - users, their preferences, categories and feed subscriptions.

These rows carry the override tiers the settings cascade layers on top of a
feed's own settings.
"""

import json
from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_category, row_to_subscription, row_to_user
from .models import DBCategory, DBSubscription, DBUser

_SUBSCRIPTION_WITH_FEED = """
    SELECT uf.*,
           f.last_fetched as feed_last_fetched,
           f.error_count as feed_error_count,
           f.settings as feed_settings
    FROM user_feeds uf
    JOIN feeds f ON f.id = uf.feed_id
"""


def _dump(settings: dict | None) -> str | None:
    return json.dumps(settings) if settings else None


class SubscriptionRepository:
    """Repository for users, categories and user-feed subscriptions."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    # ─────────────────────────────────────────────────────────────
    # Users and preferences
    # ─────────────────────────────────────────────────────────────

    def get_or_create_user(self, email: str, name: str | None = None) -> int:
        """Get existing user by email or create a new one. Returns user ID."""
        with self._db.conn() as conn:
            row = conn.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
            if row:
                return row["id"]
            cursor = conn.execute(
                "INSERT INTO users (email, name, created_at) VALUES (?, ?, ?)",
                (email, name, datetime.now().isoformat())
            )
            return cursor.lastrowid

    def get_user(self, user_id: int) -> DBUser | None:
        """Get user by ID."""
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return row_to_user(row) if row else None

    def get_preferences(self, user_id: int) -> dict | None:
        """Get a user's default settings blob."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT settings FROM user_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
            if not row or not row["settings"]:
                return None
            return json.loads(row["settings"])

    def set_preferences(self, user_id: int, settings: dict | None):
        """Replace a user's default settings blob."""
        with self._db.conn() as conn:
            conn.execute(
                """INSERT INTO user_preferences (user_id, settings, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                   settings = excluded.settings, updated_at = excluded.updated_at""",
                (user_id, _dump(settings), datetime.now().isoformat())
            )

    # ─────────────────────────────────────────────────────────────
    # Categories
    # ─────────────────────────────────────────────────────────────

    def add_category(
        self,
        user_id: int,
        name: str,
        sort_order: int = 0,
        settings: dict | None = None
    ) -> int:
        """Create a category. Returns category ID."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO user_categories (user_id, name, sort_order, settings, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, name, sort_order, _dump(settings), datetime.now().isoformat())
            )
            return cursor.lastrowid

    def get_category(self, category_id: int) -> DBCategory | None:
        """Get category by ID."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM user_categories WHERE id = ?", (category_id,)
            ).fetchone()
            return row_to_category(row) if row else None

    def get_categories(self, user_id: int) -> list[DBCategory]:
        """Get a user's categories in display order."""
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM user_categories WHERE user_id = ? ORDER BY sort_order, id",
                (user_id,)
            ).fetchall()
            return [row_to_category(row) for row in rows]

    def set_category_settings(self, category_id: int, settings: dict | None):
        """Replace a category's settings blob."""
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE user_categories SET settings = ? WHERE id = ?",
                (_dump(settings), category_id)
            )

    def delete_category(self, category_id: int):
        """Delete a category. Subscriptions stay, only the assignment goes."""
        with self._db.conn() as conn:
            conn.execute("DELETE FROM user_categories WHERE id = ?", (category_id,))

    def assign_category(self, subscription_id: int, category_id: int):
        """Put a subscription in a category."""
        with self._db.conn() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO user_feed_categories (user_feed_id, category_id)
                   VALUES (?, ?)""",
                (subscription_id, category_id)
            )

    def get_subscription_category(self, subscription_id: int) -> DBCategory | None:
        """First category (by sort order) a subscription belongs to."""
        with self._db.conn() as conn:
            row = conn.execute(
                """SELECT c.* FROM user_categories c
                   JOIN user_feed_categories ufc ON ufc.category_id = c.id
                   WHERE ufc.user_feed_id = ?
                   ORDER BY c.sort_order, c.id
                   LIMIT 1""",
                (subscription_id,)
            ).fetchone()
            return row_to_category(row) if row else None

    # ─────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────

    def subscribe(
        self,
        user_id: int,
        feed_id: int,
        custom_name: str | None = None,
        settings: dict | None = None
    ) -> int:
        """Subscribe a user to a feed. Returns the subscription ID."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT id FROM user_feeds WHERE user_id = ? AND feed_id = ?",
                (user_id, feed_id)
            ).fetchone()
            if row:
                return row["id"]
            cursor = conn.execute(
                """INSERT INTO user_feeds (user_id, feed_id, custom_name, settings, subscribed_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, feed_id, custom_name, _dump(settings), datetime.now().isoformat())
            )
            return cursor.lastrowid

    def unsubscribe(self, user_id: int, feed_id: int) -> bool:
        """Remove a subscription."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "DELETE FROM user_feeds WHERE user_id = ? AND feed_id = ?",
                (user_id, feed_id)
            )
            return cursor.rowcount > 0

    def get_subscription(self, user_id: int, feed_id: int) -> DBSubscription | None:
        """Get one subscription joined with its feed state."""
        with self._db.conn() as conn:
            row = conn.execute(
                _SUBSCRIPTION_WITH_FEED + " WHERE uf.user_id = ? AND uf.feed_id = ?",
                (user_id, feed_id)
            ).fetchone()
            return row_to_subscription(row) if row else None

    def set_subscription_settings(self, subscription_id: int, settings: dict | None):
        """Replace a subscription's override blob."""
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE user_feeds SET settings = ? WHERE id = ?",
                (_dump(settings), subscription_id)
            )

    def get_user_subscriptions(self, user_id: int, max_error_count: int | None = None) -> list[DBSubscription]:
        """Get a user's subscriptions, optionally skipping quarantined feeds."""
        query = _SUBSCRIPTION_WITH_FEED + " WHERE uf.user_id = ?"
        params: list = [user_id]
        if max_error_count is not None:
            query += " AND f.error_count < ?"
            params.append(max_error_count)
        query += " ORDER BY uf.id"
        with self._db.conn() as conn:
            rows = conn.execute(query, params).fetchall()
            return [row_to_subscription(row) for row in rows]

    def get_all_subscriptions(self, max_error_count: int | None = None) -> list[DBSubscription]:
        """Get every subscription, optionally skipping quarantined feeds."""
        query = _SUBSCRIPTION_WITH_FEED
        params: list = []
        if max_error_count is not None:
            query += " WHERE f.error_count < ?"
            params.append(max_error_count)
        query += " ORDER BY uf.id"
        with self._db.conn() as conn:
            rows = conn.execute(query, params).fetchall()
            return [row_to_subscription(row) for row in rows]
