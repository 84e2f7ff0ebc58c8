"""
Article repository - CRUD, dedup lookups, enrichment and retention queries.
"""

import json
import sqlite3
from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_article
from .models import DBArticle

# Retention ranks articles by publish time, falling back to ingestion time
_ARTICLE_AGE = "COALESCE(published_at, created_at)"


class ArticleRepository:
    """Repository for article operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        feed_id: int,
        url: str,
        title: str,
        guid: str | None = None,
        content: str | None = None,
        content_hash: str | None = None,
        excerpt: str | None = None,
        author: str | None = None,
        image_url: str | None = None,
        published_at: datetime | None = None,
    ) -> int | None:
        """Add a new article. Returns article ID or None if it violates a unique key."""
        now = datetime.now().isoformat()
        with self._db.conn() as conn:
            try:
                cursor = conn.execute(
                    """INSERT INTO articles
                       (feed_id, url, guid, title, content, content_hash, excerpt, author,
                        image_url, published_at, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (feed_id, url, guid, title, content, content_hash, excerpt, author,
                     image_url, published_at.isoformat() if published_at else None, now, now)
                )
                return cursor.lastrowid
            except sqlite3.IntegrityError:
                # Duplicate URL or (feed, guid)
                return None

    def get(self, article_id: int) -> DBArticle | None:
        """Get single article by ID."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM articles WHERE id = ?", (article_id,)
            ).fetchone()
            return row_to_article(row) if row else None

    def get_by_url(self, url: str) -> DBArticle | None:
        """Get article by URL (unique across all feeds)."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM articles WHERE url = ?", (url,)
            ).fetchone()
            return row_to_article(row) if row else None

    def get_by_guid(self, feed_id: int, guid: str) -> DBArticle | None:
        """Get article by the source's unique id within a feed."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM articles WHERE feed_id = ? AND guid = ?", (feed_id, guid)
            ).fetchone()
            return row_to_article(row) if row else None

    def get_by_content_hash(self, feed_id: int, content_hash: str) -> DBArticle | None:
        """Get article by content hash within a feed."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM articles WHERE feed_id = ? AND content_hash = ? LIMIT 1",
                (feed_id, content_hash)
            ).fetchone()
            return row_to_article(row) if row else None

    def count(self, feed_id: int | None = None) -> int:
        """Count articles, optionally for one feed."""
        with self._db.conn() as conn:
            if feed_id is not None:
                row = conn.execute(
                    "SELECT COUNT(*) as n FROM articles WHERE feed_id = ?", (feed_id,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) as n FROM articles").fetchone()
            return row["n"]

    def update_from_source(
        self,
        article_id: int,
        title: str,
        content: str | None,
        content_hash: str | None,
        excerpt: str | None = None,
        author: str | None = None,
        image_url: str | None = None,
        published_at: datetime | None = None,
    ):
        """Refresh an article's source fields after its content changed."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE articles
                   SET title = ?, content = ?, content_hash = ?, excerpt = ?,
                       author = ?, image_url = ?, published_at = ?, updated_at = ?
                   WHERE id = ?""",
                (title, content, content_hash, excerpt, author, image_url,
                 published_at.isoformat() if published_at else None,
                 datetime.now().isoformat(), article_id)
            )

    def set_starred(self, article_id: int, starred: bool = True):
        """Star or unstar an article."""
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE articles SET is_starred = ? WHERE id = ?",
                (starred, article_id)
            )

    def delete(self, article_id: int) -> bool:
        """Delete a single article."""
        with self._db.conn() as conn:
            cursor = conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
            return cursor.rowcount > 0

    # ─────────────────────────────────────────────────────────────
    # Enrichment
    # ─────────────────────────────────────────────────────────────

    def get_without_embeddings(self, limit: int = 50) -> list[DBArticle]:
        """Get newest articles that have no embedding yet."""
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM articles
                   WHERE embedding IS NULL
                   ORDER BY created_at DESC, id DESC
                   LIMIT ?""",
                (limit,)
            ).fetchall()
            return [row_to_article(row) for row in rows]

    def get_by_ids(self, article_ids: list[int]) -> list[DBArticle]:
        """Get several articles by ID."""
        if not article_ids:
            return []
        placeholders = ",".join("?" * len(article_ids))
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM articles WHERE id IN ({placeholders}) ORDER BY id",
                article_ids
            ).fetchall()
            return [row_to_article(row) for row in rows]

    def update_embedding(self, article_id: int, embedding: list[float], model: str):
        """Store an article's embedding vector."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE articles
                   SET embedding = ?, embedding_model = ?, embedding_generated_at = ?
                   WHERE id = ?""",
                (json.dumps(embedding), model, datetime.now().isoformat(), article_id)
            )

    def get_embedding_counts(self) -> tuple[int, int]:
        """Return (total articles, articles with an embedding)."""
        with self._db.conn() as conn:
            row = conn.execute(
                """SELECT COUNT(*) as total,
                          COUNT(embedding) as with_embedding
                   FROM articles"""
            ).fetchone()
            return row["total"], row["with_embedding"]

    def update_summary(
        self,
        article_id: int,
        summary: str,
        key_points: list[str] | None = None,
        topics: list[str] | None = None,
    ):
        """Store a generated summary."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE articles
                   SET summary = ?, key_points = ?, topics = ?, summarized_at = ?
                   WHERE id = ?""",
                (summary,
                 json.dumps(key_points) if key_points else None,
                 json.dumps(topics) if topics else None,
                 datetime.now().isoformat(), article_id)
            )

    # ─────────────────────────────────────────────────────────────
    # Retention
    # ─────────────────────────────────────────────────────────────

    def get_ids_older_than(
        self,
        feed_id: int,
        cutoff: datetime,
        exclude_starred: bool = True
    ) -> list[int]:
        """IDs of a feed's articles published (or ingested) before the cutoff."""
        query = f"SELECT id FROM articles WHERE feed_id = ? AND {_ARTICLE_AGE} < ?"
        if exclude_starred:
            query += " AND is_starred = 0"
        with self._db.conn() as conn:
            rows = conn.execute(query, (feed_id, cutoff.isoformat())).fetchall()
            return [row["id"] for row in rows]

    def count_starred_older_than(self, feed_id: int, cutoff: datetime) -> int:
        """Count starred articles that the age rule would otherwise remove."""
        with self._db.conn() as conn:
            row = conn.execute(
                f"""SELECT COUNT(*) as n FROM articles
                    WHERE feed_id = ? AND is_starred = 1 AND {_ARTICLE_AGE} < ?""",
                (feed_id, cutoff.isoformat())
            ).fetchone()
            return row["n"]

    def get_ids_beyond_limit(
        self,
        feed_id: int,
        keep: int,
        exclude_starred: bool = True
    ) -> list[int]:
        """IDs of the oldest articles past the newest `keep` in a feed."""
        query = "SELECT id FROM articles WHERE feed_id = ?"
        if exclude_starred:
            query += " AND is_starred = 0"
        query += f" ORDER BY {_ARTICLE_AGE} DESC, id DESC LIMIT -1 OFFSET ?"
        with self._db.conn() as conn:
            rows = conn.execute(query, (feed_id, keep)).fetchall()
            return [row["id"] for row in rows]

    def delete_many(self, article_ids: list[int]) -> int:
        """Delete articles by ID. Returns number deleted."""
        if not article_ids:
            return 0
        deleted = 0
        with self._db.conn() as conn:
            # Stay under SQLite's bound-parameter limit
            for start in range(0, len(article_ids), 500):
                chunk = article_ids[start:start + 500]
                placeholders = ",".join("?" * len(chunk))
                cursor = conn.execute(
                    f"DELETE FROM articles WHERE id IN ({placeholders})", chunk
                )
                deleted += cursor.rowcount
        return deleted
