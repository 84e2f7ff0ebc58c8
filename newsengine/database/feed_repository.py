"""
Feed repository - CRUD operations and refresh bookkeeping for feeds.
"""

import json
from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_feed
from .models import DBFeed


class FeedRepository:
    """Repository for feed operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, url: str, name: str, settings: dict | None = None) -> int:
        """Add a new feed. Returns feed ID."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "INSERT INTO feeds (url, name, settings, created_at) VALUES (?, ?, ?, ?)",
                (url, name, json.dumps(settings) if settings else None, datetime.now().isoformat())
            )
            return cursor.lastrowid

    def get(self, feed_id: int) -> DBFeed | None:
        """Get single feed by ID with its article count."""
        with self._db.conn() as conn:
            row = conn.execute(
                """SELECT f.*, COUNT(a.id) as article_count
                   FROM feeds f
                   LEFT JOIN articles a ON f.id = a.feed_id
                   WHERE f.id = ?
                   GROUP BY f.id""",
                (feed_id,)
            ).fetchone()
            return row_to_feed(row) if row else None

    def get_by_url(self, url: str) -> DBFeed | None:
        """Get single feed by URL."""
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM feeds WHERE url = ?", (url,)).fetchone()
            return row_to_feed(row) if row else None

    def get_all(self) -> list[DBFeed]:
        """Get all feeds with article counts."""
        with self._db.conn() as conn:
            rows = conn.execute("""
                SELECT f.*, COUNT(a.id) as article_count
                FROM feeds f
                LEFT JOIN articles a ON f.id = a.feed_id
                GROUP BY f.id
                ORDER BY f.name
            """).fetchall()
            return [row_to_feed(row) for row in rows]

    def get_without_subscribers(self, max_error_count: int) -> list[DBFeed]:
        """Get feeds nobody subscribes to that are not quarantined."""
        with self._db.conn() as conn:
            rows = conn.execute("""
                SELECT f.* FROM feeds f
                WHERE f.error_count < ?
                  AND NOT EXISTS (SELECT 1 FROM user_feeds uf WHERE uf.feed_id = f.id)
            """, (max_error_count,)).fetchall()
            return [row_to_feed(row) for row in rows]

    def update(self, feed_id: int, name: str | None = None):
        """Update feed details."""
        with self._db.conn() as conn:
            if name is not None:
                conn.execute("UPDATE feeds SET name = ? WHERE id = ?", (name, feed_id))

    def update_settings(self, feed_id: int, settings: dict | None):
        """Replace the feed's own settings blob."""
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE feeds SET settings = ? WHERE id = ?",
                (json.dumps(settings) if settings else None, feed_id)
            )

    def mark_fetched(self, feed_id: int, fetched_at: datetime | None = None):
        """Record a successful refresh: update last fetched and clear errors."""
        fetched_at = fetched_at or datetime.now()
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE feeds
                   SET last_fetched = ?, error_count = 0, last_error = NULL
                   WHERE id = ?""",
                (fetched_at.isoformat(), feed_id)
            )

    def record_error(self, feed_id: int, error: str):
        """Increment the consecutive error counter and store the message."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE feeds
                   SET error_count = error_count + 1, last_error = ?
                   WHERE id = ?""",
                (error, feed_id)
            )

    def reset_errors(self, feed_id: int) -> bool:
        """Lift quarantine by clearing the error counter."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "UPDATE feeds SET error_count = 0, last_error = NULL WHERE id = ?",
                (feed_id,)
            )
            return cursor.rowcount > 0

    def delete(self, feed_id: int):
        """Delete feed, its articles and its subscriptions."""
        with self._db.conn() as conn:
            conn.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
