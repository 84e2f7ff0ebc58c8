"""
Summarization enrichment for freshly ingested articles.
"""

import logging
from dataclasses import dataclass, field

from ..database import Database
from ..summarizer import Summarizer
from .cost_tracker import CostTracker
from .settings_cascade import EffectiveFeedSettings

logger = logging.getLogger(__name__)


@dataclass
class SummarizationResult:
    summarized: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class SummarizationService:
    """Summarizes articles long enough to be worth it and records usage."""

    def __init__(
        self,
        db: Database,
        summarizer: Summarizer | None,
        cost_tracker: CostTracker | None = None,
    ):
        self.db = db
        self.summarizer = summarizer
        self.cost_tracker = cost_tracker or CostTracker(db)

    @property
    def available(self) -> bool:
        return self.summarizer is not None

    async def summarize_articles(
        self,
        article_ids: list[int],
        settings: EffectiveFeedSettings,
        user_id: int | None = None,
    ) -> SummarizationResult:
        """
        Summarize the given articles one at a time.

        Articles that already have a summary or whose content is shorter than
        `summary_min_content_length` are skipped. A failing article is logged
        and counted without stopping the rest.
        """
        result = SummarizationResult()
        if self.summarizer is None:
            result.skipped = len(article_ids)
            return result

        for article in self.db.articles.get_by_ids(article_ids):
            content = article.content or ""
            if article.summary or len(content) < settings.summary_min_content_length:
                result.skipped += 1
                continue

            try:
                summary = await self.summarizer.summarize_async(
                    content,
                    title=article.title,
                    include_key_points=settings.include_key_points,
                    include_topics=settings.include_topics,
                )
            except Exception as e:
                logger.warning(f"Summarization failed for article {article.id}: {e}")
                result.failed += 1
                result.errors.append(f"{article.id}: {e}")
                continue

            self.db.articles.update_summary(
                article.id, summary.summary, summary.key_points, summary.topics
            )
            self.cost_tracker.track_summarization(
                provider=self.summarizer.provider.name,
                model=summary.model,
                prompt_tokens=summary.input_tokens,
                completion_tokens=summary.output_tokens,
                user_id=user_id,
                article_id=article.id,
            )
            result.summarized += 1

        return result
