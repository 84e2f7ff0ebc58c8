"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class DatabaseConnection:
    """Manages database connection and schema."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def vacuum(self):
        """Reclaim free pages after large deletions."""
        connection = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            connection.execute("VACUUM")
        finally:
            connection.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS feeds (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    url TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    last_fetched TIMESTAMP,
                    error_count INTEGER NOT NULL DEFAULT 0,
                    last_error TEXT,
                    settings TEXT,
                    created_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS articles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                    url TEXT UNIQUE NOT NULL,
                    guid TEXT,
                    title TEXT NOT NULL,
                    author TEXT,
                    content TEXT,
                    content_hash TEXT,
                    excerpt TEXT,
                    image_url TEXT,
                    is_starred BOOLEAN DEFAULT FALSE,
                    summary TEXT,
                    key_points TEXT,
                    topics TEXT,
                    summarized_at TIMESTAMP,
                    embedding TEXT,
                    embedding_model TEXT,
                    embedding_generated_at TIMESTAMP,
                    published_at TIMESTAMP,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_articles_feed_guid
                    ON articles(feed_id, guid) WHERE guid IS NOT NULL;
                CREATE INDEX IF NOT EXISTS idx_articles_feed ON articles(feed_id);
                CREATE INDEX IF NOT EXISTS idx_articles_hash ON articles(feed_id, content_hash);
                CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at DESC);
                CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created_at DESC);

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    name TEXT,
                    created_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                    settings TEXT,
                    updated_at TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS user_categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    settings TEXT,
                    created_at TIMESTAMP,
                    UNIQUE(user_id, name)
                );

                CREATE TABLE IF NOT EXISTS user_feeds (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                    custom_name TEXT,
                    settings TEXT,
                    subscribed_at TIMESTAMP,
                    UNIQUE(user_id, feed_id)
                );

                CREATE TABLE IF NOT EXISTS user_feed_categories (
                    user_feed_id INTEGER NOT NULL REFERENCES user_feeds(id) ON DELETE CASCADE,
                    category_id INTEGER NOT NULL REFERENCES user_categories(id) ON DELETE CASCADE,
                    PRIMARY KEY (user_feed_id, category_id)
                );

                CREATE INDEX IF NOT EXISTS idx_user_feeds_user ON user_feeds(user_id);
                CREATE INDEX IF NOT EXISTS idx_user_feeds_feed ON user_feeds(feed_id);

                CREATE TABLE IF NOT EXISTS job_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_name TEXT NOT NULL,
                    status TEXT CHECK(status IN ('RUNNING', 'SUCCESS', 'FAILED')) NOT NULL,
                    triggered_by TEXT CHECK(triggered_by IN ('SCHEDULER', 'MANUAL')) NOT NULL,
                    started_at TIMESTAMP NOT NULL,
                    completed_at TIMESTAMP,
                    duration_ms INTEGER,
                    stats TEXT,
                    error TEXT,
                    logs TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_job_runs_name ON job_runs(job_name);
                CREATE INDEX IF NOT EXISTS idx_job_runs_started ON job_runs(started_at DESC);

                CREATE TABLE IF NOT EXISTS cost_ledger (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    operation TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    model TEXT NOT NULL,
                    prompt_tokens INTEGER NOT NULL DEFAULT 0,
                    completion_tokens INTEGER NOT NULL DEFAULT 0,
                    total_tokens INTEGER NOT NULL DEFAULT 0,
                    cost REAL NOT NULL DEFAULT 0,
                    user_id INTEGER,
                    article_id INTEGER,
                    created_at TIMESTAMP NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_cost_ledger_created ON cost_ledger(operation, created_at DESC);

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TIMESTAMP
                );
            """)

            # Migrations
            self._migrate_add_column(connection, "articles", "updated_at", "TIMESTAMP")
            self._migrate_add_column(connection, "job_runs", "logs", "TEXT")

    def _migrate_add_column(
        self,
        conn: sqlite3.Connection,
        table: str,
        column: str,
        column_type: str
    ):
        """Add a column to a table if it doesn't exist."""
        cursor = conn.execute(f"PRAGMA table_info({table})")
        columns = [row[1] for row in cursor.fetchall()]
        if column not in columns:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
