"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import sqlite3
from datetime import datetime

from .models import (
    DBArticle,
    DBCategory,
    DBCostEntry,
    DBFeed,
    DBJobRun,
    DBSubscription,
    DBUser,
)


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_json(value: str | None):
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def _safe_get(row: sqlite3.Row, col: str):
    """Read a column that only some queries select."""
    try:
        return row[col]
    except (IndexError, KeyError):
        return None


def row_to_feed(row: sqlite3.Row) -> DBFeed:
    """Convert a database row to a DBFeed."""
    return DBFeed(
        id=row["id"],
        url=row["url"],
        name=row["name"],
        last_fetched=_parse_datetime(row["last_fetched"]),
        error_count=row["error_count"] or 0,
        last_error=row["last_error"],
        settings=_parse_json(row["settings"]),
        created_at=_parse_datetime(row["created_at"]),
        article_count=_safe_get(row, "article_count") or 0,
    )


def row_to_article(row: sqlite3.Row) -> DBArticle:
    """Convert a database row to a DBArticle."""
    created_at = _parse_datetime(row["created_at"]) or datetime.now()

    return DBArticle(
        id=row["id"],
        feed_id=row["feed_id"],
        url=row["url"],
        title=row["title"],
        guid=row["guid"],
        content=row["content"],
        content_hash=row["content_hash"],
        published_at=_parse_datetime(row["published_at"]),
        created_at=created_at,
        excerpt=row["excerpt"],
        author=row["author"],
        image_url=row["image_url"],
        is_starred=bool(row["is_starred"]),
        updated_at=_parse_datetime(row["updated_at"]),
        summary=row["summary"],
        key_points=_parse_json(row["key_points"]),
        topics=_parse_json(row["topics"]),
        summarized_at=_parse_datetime(row["summarized_at"]),
        embedding=_parse_json(row["embedding"]),
        embedding_model=row["embedding_model"],
        embedding_generated_at=_parse_datetime(row["embedding_generated_at"]),
    )


def row_to_user(row: sqlite3.Row) -> DBUser:
    """Convert a database row to a DBUser."""
    return DBUser(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        created_at=_parse_datetime(row["created_at"]),
    )


def row_to_category(row: sqlite3.Row) -> DBCategory:
    """Convert a database row to a DBCategory."""
    return DBCategory(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        sort_order=row["sort_order"] or 0,
        settings=_parse_json(row["settings"]),
    )


def row_to_subscription(row: sqlite3.Row) -> DBSubscription:
    """Convert a user_feeds row (optionally joined with feeds) to a DBSubscription."""
    return DBSubscription(
        id=row["id"],
        user_id=row["user_id"],
        feed_id=row["feed_id"],
        custom_name=row["custom_name"],
        settings=_parse_json(row["settings"]),
        subscribed_at=_parse_datetime(row["subscribed_at"]),
        feed_last_fetched=_parse_datetime(_safe_get(row, "feed_last_fetched")),
        feed_error_count=_safe_get(row, "feed_error_count") or 0,
        feed_settings=_parse_json(_safe_get(row, "feed_settings")),
    )


def row_to_job_run(row: sqlite3.Row) -> DBJobRun:
    """Convert a database row to a DBJobRun."""
    return DBJobRun(
        id=row["id"],
        job_name=row["job_name"],
        status=row["status"],
        triggered_by=row["triggered_by"],
        started_at=_parse_datetime(row["started_at"]) or datetime.now(),
        completed_at=_parse_datetime(row["completed_at"]),
        duration_ms=row["duration_ms"],
        stats=_parse_json(row["stats"]),
        error=row["error"],
        logs=_parse_json(row["logs"]) or [],
    )


def row_to_cost_entry(row: sqlite3.Row) -> DBCostEntry:
    """Convert a database row to a DBCostEntry."""
    return DBCostEntry(
        id=row["id"],
        operation=row["operation"],
        provider=row["provider"],
        model=row["model"],
        prompt_tokens=row["prompt_tokens"] or 0,
        completion_tokens=row["completion_tokens"] or 0,
        total_tokens=row["total_tokens"] or 0,
        cost=row["cost"] or 0.0,
        created_at=_parse_datetime(row["created_at"]) or datetime.now(),
        user_id=row["user_id"],
        article_id=row["article_id"],
    )
