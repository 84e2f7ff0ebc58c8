"""
Embedding service: generates article vectors in bounded, paced batches.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ..database import Database, DBArticle
from ..embeddings import EmbeddingProvider
from ..exceptions import EmbeddingError
from .cost_tracker import CostTracker

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 2000


@dataclass
class EmbeddingBatchResult:
    processed: int = 0
    failed: int = 0
    total_tokens: int = 0
    batches_processed: int = 0
    skipped: int = 0
    already_running: bool = False
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "EmbeddingBatchResult"):
        self.processed += other.processed
        self.failed += other.failed
        self.total_tokens += other.total_tokens
        self.skipped += other.skipped
        self.errors.extend(other.errors)


def prepare_text_for_embedding(article: DBArticle) -> str:
    """Title, excerpt and the start of the body, separated by blank lines."""
    parts = [article.title]
    if article.excerpt:
        parts.append(article.excerpt)
    if article.content:
        parts.append(article.content[:MAX_CONTENT_CHARS])
    return "\n\n".join(part for part in parts if part)


class EmbeddingService:
    """Discovers articles without vectors and embeds them."""

    def __init__(
        self,
        db: Database,
        provider: EmbeddingProvider | None,
        cost_tracker: CostTracker | None = None,
        request_size: int = 10,
        pacing_delay: float = 1.0,
    ):
        self.db = db
        self.provider = provider
        self.cost_tracker = cost_tracker or CostTracker(db)
        self.request_size = max(1, request_size)
        self.pacing_delay = pacing_delay
        self._lock = asyncio.Lock()

    def _require_provider(self) -> EmbeddingProvider:
        if self.provider is None:
            raise EmbeddingError("No embedding provider configured")
        return self.provider

    async def generate_for_articles(
        self,
        article_ids: list[int],
        user_id: int | None = None
    ) -> EmbeddingBatchResult:
        """Embed specific articles, skipping ones that already have a vector."""
        self._require_provider()
        articles = self.db.articles.get_by_ids(article_ids)
        pending = [a for a in articles if a.embedding is None]

        result = await self._embed_articles(pending, user_id)
        result.skipped += len(articles) - len(pending)
        return result

    async def process_articles_without_embeddings(
        self,
        batch_size: int = 50,
        max_batches: int = 10
    ) -> EmbeddingBatchResult:
        """
        Page through articles lacking vectors and embed them.

        Stops when a page comes back short, when `max_batches` pages were
        processed or when a whole page fails. Waits `pacing_delay` seconds
        between pages. Concurrent calls return immediately with
        `already_running` set.
        """
        result = EmbeddingBatchResult()
        if self._lock.locked():
            logger.info("Embedding generation already running, skipping")
            result.already_running = True
            return result

        async with self._lock:
            self._require_provider()

            for batch_number in range(max_batches):
                articles = self.db.articles.get_without_embeddings(limit=batch_size)
                if not articles:
                    break

                page = await self._embed_articles(articles)
                result.merge(page)
                result.batches_processed += 1
                logger.info(
                    f"Embedding batch {batch_number + 1}: "
                    f"{page.processed} processed, {page.failed} failed"
                )

                if page.processed == 0:
                    logger.warning("Embedding batch made no progress, stopping")
                    break
                if len(articles) < batch_size:
                    break
                if batch_number + 1 < max_batches:
                    await asyncio.sleep(self.pacing_delay)

        return result

    async def _embed_articles(
        self,
        articles: list[DBArticle],
        user_id: int | None = None
    ) -> EmbeddingBatchResult:
        """Embed articles in backend-sized requests, one at a time."""
        provider = self._require_provider()
        result = EmbeddingBatchResult()

        for start in range(0, len(articles), self.request_size):
            chunk = articles[start:start + self.request_size]
            texts = [prepare_text_for_embedding(a) for a in chunk]
            try:
                batch = await provider.generate_embeddings(texts)
            except Exception as e:
                logger.warning(f"Embedding request for {len(chunk)} articles failed: {e}")
                result.failed += len(chunk)
                result.errors.append(str(e))
                continue

            for article, vector in zip(chunk, batch.embeddings):
                self.db.articles.update_embedding(article.id, vector, batch.model)
                result.processed += 1
            result.failed += len(chunk) - len(batch.embeddings)
            result.total_tokens += batch.total_tokens

            self.cost_tracker.track_embedding(
                provider=provider.name,
                model=batch.model,
                tokens=batch.total_tokens,
                user_id=user_id,
                article_id=chunk[0].id if len(chunk) == 1 else None,
            )

        return result

    def get_embedding_stats(self) -> dict:
        """Coverage of embeddings across all articles."""
        total, with_embedding = self.db.articles.get_embedding_counts()
        return {
            "total": total,
            "with_embedding": with_embedding,
            "without_embedding": total - with_embedding,
            "percentage": round(with_embedding / total * 100, 1) if total else 0.0,
        }
