"""
Deduplication and merge rules for incoming feed items.

Identity is resolved in a fixed order, first hit wins:
1. (feed, guid) when the item carries a guid
2. URL across all feeds
3. (feed, content hash) when the item has no guid but has a body

Near-duplicate detection (Jaccard similarity) is an opt-in utility and is
not applied on the upsert path.
"""

import hashlib
from datetime import datetime

from ..database import ArticleRepository, DBArticle
from ..feeds import Candidate

# Publish-time drift tolerated before an item counts as changed
TIMESTAMP_TOLERANCE_SECONDS = 60
NEAR_DUPLICATE_THRESHOLD = 0.8
MIN_WORD_LENGTH = 4


def compute_content_hash(content: str | None) -> str | None:
    """SHA-256 of the body with all whitespace runs collapsed."""
    if not content:
        return None
    normalized = " ".join(content.split())
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def find_existing_article(
    articles: ArticleRepository,
    feed_id: int,
    candidate: Candidate,
    content_hash: str | None = None,
) -> DBArticle | None:
    """Resolve a candidate to a stored article, or None if it is new."""
    if candidate.guid:
        existing = articles.get_by_guid(feed_id, candidate.guid)
        if existing:
            return existing

    if candidate.link:
        existing = articles.get_by_url(candidate.link)
        if existing:
            return existing

    if not candidate.guid and candidate.content:
        content_hash = content_hash or compute_content_hash(candidate.content)
        if content_hash:
            return articles.get_by_content_hash(feed_id, content_hash)

    return None


def _timestamps_differ(a: datetime | None, b: datetime | None) -> bool:
    if a is None or b is None:
        return False
    return abs((a - b).total_seconds()) > TIMESTAMP_TOLERANCE_SECONDS


def should_update(existing: DBArticle, candidate: Candidate, content_hash: str | None) -> bool:
    """True when the stored article is stale relative to the candidate."""
    if existing.content_hash and content_hash and existing.content_hash != content_hash:
        return True
    if existing.title != candidate.title:
        return True
    return _timestamps_differ(existing.published_at, candidate.published_at)


def _word_set(text: str) -> set[str]:
    return {word for word in text.lower().split() if len(word) >= MIN_WORD_LENGTH}


def calculate_similarity(text1: str | None, text2: str | None) -> float:
    """Jaccard similarity of the two texts' significant word sets (0.0 to 1.0)."""
    words1 = _word_set(text1 or "")
    words2 = _word_set(text2 or "")
    if not words1 and not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def are_near_duplicates(
    text1: str | None,
    text2: str | None,
    threshold: float = NEAR_DUPLICATE_THRESHOLD
) -> bool:
    """True when two bodies are near-identical reposts."""
    return calculate_similarity(text1, text2) >= threshold


def deduplicate_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """Drop repeated items within one fetch, keyed on guid or link."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        key = candidate.guid or candidate.link
        if not key:
            unique.append(candidate)
            continue
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def merge_content(source: str | None, extracted: str | None, strategy: str = "replace") -> str:
    """
    Combine the feed-native body with an extracted body.

    replace -> extracted, prepend -> extracted + blank line + source,
    append -> source + blank line + extracted. A missing side yields the other.
    """
    source = source or ""
    extracted = extracted or ""
    if not extracted:
        return source
    if strategy == "prepend" and source:
        return f"{extracted}\n\n{source}"
    if strategy == "append" and source:
        return f"{source}\n\n{extracted}"
    return extracted
