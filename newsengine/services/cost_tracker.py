"""
Cost tracking for embedding and summarization calls.

Every backend call appends one row to the cost ledger. Totals, per-provider,
per-model and per-user breakdowns and rolling windows are computed when read;
nothing is accumulated in memory. Old rows are removed only by `prune`.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta

from ..database import Database, DBCostEntry

logger = logging.getLogger(__name__)

EMBEDDING = "embedding"
SUMMARIZATION = "summarization"

# USD per 1K tokens
EMBEDDING_PRICING = {
    "text-embedding-3-small": 0.00002,
    "text-embedding-3-large": 0.00013,
    "text-embedding-ada-002": 0.0001,
}
DEFAULT_EMBEDDING_PRICE = 0.00002

# USD per 1K tokens: (prompt, completion)
SUMMARIZATION_PRICING = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o": (0.0025, 0.01),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-4": (0.03, 0.06),
    "gpt-3.5-turbo": (0.0005, 0.0015),
    "claude-haiku-4-5": (0.001, 0.005),
    "claude-sonnet-4-5": (0.003, 0.015),
}
DEFAULT_SUMMARIZATION_PRICE = (0.01, 0.03)

LOCAL_PROVIDERS = {"local", "ollama"}


def _lookup_price(model: str, table: dict, default):
    """Exact match first, then the longest known prefix (dated model ids)."""
    if model in table:
        return table[model]
    for known in sorted(table, key=len, reverse=True):
        if model.startswith(known):
            return table[known]
    return default


def calculate_embedding_cost(model: str, tokens: int, provider: str = "openai") -> float:
    """Estimated cost of an embedding call in USD."""
    if provider in LOCAL_PROVIDERS:
        return 0.0
    price = _lookup_price(model, EMBEDDING_PRICING, DEFAULT_EMBEDDING_PRICE)
    return tokens / 1000 * price


def calculate_summarization_cost(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    provider: str = "openai",
) -> float:
    """Estimated cost of a summarization call in USD."""
    if provider in LOCAL_PROVIDERS:
        return 0.0
    prompt_price, completion_price = _lookup_price(
        model, SUMMARIZATION_PRICING, DEFAULT_SUMMARIZATION_PRICE
    )
    return prompt_tokens / 1000 * prompt_price + completion_tokens / 1000 * completion_price


def _bucket() -> dict:
    return {"tokens": 0, "cost": 0.0, "count": 0}


def _add(bucket: dict, entry: DBCostEntry):
    bucket["tokens"] += entry.total_tokens
    bucket["cost"] += entry.cost
    bucket["count"] += 1


class CostTracker:
    """Appends to and aggregates the persistent cost ledger."""

    def __init__(self, db: Database):
        self.db = db

    def track_embedding(
        self,
        provider: str,
        model: str,
        tokens: int,
        user_id: int | None = None,
        article_id: int | None = None,
    ) -> float:
        """Record an embedding call. Returns its estimated cost."""
        cost = calculate_embedding_cost(model, tokens, provider)
        self.db.costs.add(
            operation=EMBEDDING,
            provider=provider,
            model=model,
            prompt_tokens=tokens,
            completion_tokens=0,
            cost=cost,
            user_id=user_id,
            article_id=article_id,
        )
        return cost

    def track_summarization(
        self,
        provider: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        user_id: int | None = None,
        article_id: int | None = None,
    ) -> float:
        """Record a summarization call. Returns its estimated cost."""
        cost = calculate_summarization_cost(model, prompt_tokens, completion_tokens, provider)
        self.db.costs.add(
            operation=SUMMARIZATION,
            provider=provider,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
            user_id=user_id,
            article_id=article_id,
        )
        return cost

    def get_cost_stats(self, operation: str, now: datetime | None = None, recent: int = 10) -> dict:
        """
        Aggregate the ledger for one operation.

        Returns:
            Dict with totals, by_provider, by_model, by_user, rolling windows
            (last_24_hours, last_7_days, last_30_days) and recent entries
        """
        now = now or datetime.now()
        entries = self.db.costs.get_entries(operation=operation)

        totals = _bucket()
        by_provider: dict[str, dict] = defaultdict(_bucket)
        by_model: dict[str, dict] = defaultdict(_bucket)
        by_user: dict[str, dict] = defaultdict(_bucket)
        windows = {
            "last_24_hours": (now - timedelta(hours=24), _bucket()),
            "last_7_days": (now - timedelta(days=7), _bucket()),
            "last_30_days": (now - timedelta(days=30), _bucket()),
        }

        for entry in entries:
            _add(totals, entry)
            _add(by_provider[entry.provider], entry)
            _add(by_model[entry.model], entry)
            if entry.user_id is not None:
                _add(by_user[str(entry.user_id)], entry)
            for since, bucket in windows.values():
                if entry.created_at >= since:
                    _add(bucket, entry)

        return {
            "operation": operation,
            "total_tokens": totals["tokens"],
            "total_cost": totals["cost"],
            "entries_count": totals["count"],
            "by_provider": dict(by_provider),
            "by_model": dict(by_model),
            "by_user": dict(by_user),
            **{name: bucket for name, (_, bucket) in windows.items()},
            "recent_entries": entries[:recent],
        }

    def get_cost_report(self, operation: str, days: int = 30, now: datetime | None = None) -> dict:
        """Totals plus a per-day breakdown for the last `days` days."""
        now = now or datetime.now()
        start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
        entries = self.db.costs.get_entries(operation=operation, since=start)

        daily: dict[str, dict] = {}
        for offset in range(days):
            day = (start + timedelta(days=offset)).date().isoformat()
            daily[day] = _bucket()

        totals = _bucket()
        for entry in entries:
            day = entry.created_at.date().isoformat()
            if day in daily:
                _add(daily[day], entry)
                _add(totals, entry)

        return {
            "operation": operation,
            "period_start": start.isoformat(),
            "period_end": now.isoformat(),
            "total_tokens": totals["tokens"],
            "total_cost": totals["cost"],
            "entries_count": totals["count"],
            "average_daily_cost": totals["cost"] / days if days else 0.0,
            "daily": [{"date": day, **bucket} for day, bucket in daily.items()],
        }

    def prune(self, retention_days: int, now: datetime | None = None) -> int:
        """Delete ledger rows older than the retention window. Returns count."""
        now = now or datetime.now()
        deleted = self.db.costs.delete_older_than(now - timedelta(days=retention_days))
        if deleted:
            logger.info(f"Pruned {deleted} cost ledger entries older than {retention_days} days")
        return deleted
