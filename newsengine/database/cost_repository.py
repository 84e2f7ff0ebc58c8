"""
Cost ledger repository - append-only usage records for embedding and summarization calls.
"""

from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_cost_entry
from .models import DBCostEntry


class CostRepository:
    """Repository for the cost ledger. Rows are never updated."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        operation: str,
        provider: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost: float,
        user_id: int | None = None,
        article_id: int | None = None,
        created_at: datetime | None = None,
    ) -> int:
        """Append a ledger entry. Returns entry ID."""
        created_at = created_at or datetime.now()
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO cost_ledger
                   (operation, provider, model, prompt_tokens, completion_tokens,
                    total_tokens, cost, user_id, article_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (operation, provider, model, prompt_tokens, completion_tokens,
                 prompt_tokens + completion_tokens, cost, user_id, article_id,
                 created_at.isoformat())
            )
            return cursor.lastrowid

    def get_entries(
        self,
        operation: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[DBCostEntry]:
        """Ledger entries, newest first."""
        query = "SELECT * FROM cost_ledger WHERE 1=1"
        params: list = []
        if operation:
            query += " AND operation = ?"
            params.append(operation)
        if since:
            query += " AND created_at >= ?"
            params.append(since.isoformat())
        query += " ORDER BY created_at DESC, id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._db.conn() as conn:
            rows = conn.execute(query, params).fetchall()
            return [row_to_cost_entry(row) for row in rows]

    def delete_older_than(self, cutoff: datetime) -> int:
        """Drop entries older than the retention cutoff. Returns count."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "DELETE FROM cost_ledger WHERE created_at < ?", (cutoff.isoformat(),)
            )
            return cursor.rowcount
