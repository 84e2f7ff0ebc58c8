"""
Article service: reconciles fetched candidates with stored articles.
"""

import logging
from dataclasses import dataclass, field

from ..database import Database
from ..feeds import Candidate
from .deduplication import (
    compute_content_hash,
    deduplicate_candidates,
    find_existing_article,
    should_update,
)

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Counts from reconciling one batch of candidates."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    article_ids: list[int] = field(default_factory=list)  # Newly created only


class ArticleService:
    """Service for article ingestion."""

    def __init__(self, db: Database):
        self.db = db

    def upsert_articles(self, feed_id: int, candidates: list[Candidate]) -> UpsertResult:
        """
        Insert new candidates and refresh changed ones.

        Items without a link are skipped. Unchanged items are skipped. An
        insert that loses a race on a unique key counts as skipped.
        """
        result = UpsertResult()

        for candidate in deduplicate_candidates(candidates):
            if not candidate.link:
                result.skipped += 1
                continue

            content_hash = compute_content_hash(candidate.content)
            existing = find_existing_article(self.db.articles, feed_id, candidate, content_hash)

            if existing is None:
                article_id = self.db.add_article(
                    feed_id=feed_id,
                    url=candidate.link,
                    title=candidate.title,
                    guid=candidate.guid,
                    content=candidate.content,
                    content_hash=content_hash,
                    excerpt=candidate.excerpt,
                    author=candidate.author,
                    image_url=candidate.image_url,
                    published_at=candidate.published_at,
                )
                if article_id is None:
                    logger.debug(f"Skipped duplicate article {candidate.link}")
                    result.skipped += 1
                else:
                    result.created += 1
                    result.article_ids.append(article_id)
                continue

            if not should_update(existing, candidate, content_hash):
                result.skipped += 1
                continue

            self.db.articles.update_from_source(
                existing.id,
                title=candidate.title,
                content=candidate.content,
                content_hash=content_hash,
                excerpt=candidate.excerpt or existing.excerpt,
                author=candidate.author or existing.author,
                image_url=candidate.image_url or existing.image_url,
                published_at=candidate.published_at or existing.published_at,
            )
            result.updated += 1

        return result
