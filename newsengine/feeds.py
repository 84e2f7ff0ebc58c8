"""
Feed Parser - Fetch and parse RSS/Atom feeds into candidate items.

Handles:
- RSS 2.0 and Atom 1.0 formats
- Normalizing entries into candidates (guid, excerpt, image)
- Rate limiting per domain

Errors are raised as FeedFetchError so the refresh pipeline can record them
on the feed.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlparse

import aiohttp
import feedparser
from bs4 import BeautifulSoup

from .exceptions import FeedFetchError

EXCERPT_LENGTH = 300


@dataclass
class Candidate:
    """A raw feed entry not yet reconciled against storage."""
    title: str
    link: str
    content: str
    guid: str | None = None
    published_at: datetime | None = None
    author: str | None = None
    excerpt: str | None = None
    image_url: str | None = None


@dataclass
class ParsedFeed:
    """Represents a parsed feed."""
    url: str
    title: str
    description: str | None
    items: list[Candidate] = field(default_factory=list)
    last_fetched: datetime = field(default_factory=datetime.now)


def make_excerpt(html: str, length: int = EXCERPT_LENGTH) -> str | None:
    """Plain-text preview of an HTML body."""
    if not html:
        return None
    text = BeautifulSoup(html, "html.parser").get_text(separator=" ", strip=True)
    text = " ".join(text.split())
    if not text:
        return None
    if len(text) <= length:
        return text
    return text[:length].rsplit(" ", 1)[0] + "…"


class FeedParser:
    """Parses RSS/Atom feeds with rate limiting."""

    def __init__(self, timeout: int = 30, user_agent: str | None = None):
        self.timeout = timeout
        self.user_agent = user_agent or "NewsEngine/1.0 (+https://github.com/newsengine)"
        self._domain_last_fetch: dict[str, float] = {}
        self._min_interval = 1.0  # Minimum seconds between requests to same domain

    async def parse_feed_url(self, url: str) -> ParsedFeed:
        """
        Fetch and parse a feed URL.

        Raises:
            FeedFetchError: On network errors, HTTP errors or unparseable content
        """
        domain = urlparse(url).netloc
        await self._rate_limit(domain)

        headers = {"User-Agent": self.user_agent}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    resp.raise_for_status()
                    content = await resp.text()
        except aiohttp.ClientResponseError as e:
            raise FeedFetchError(f"HTTP {e.status} fetching {url}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FeedFetchError(f"Failed to fetch {url}: {e or type(e).__name__}") from e

        return self._parse(url, content)

    def _parse(self, url: str, content: str) -> ParsedFeed:
        """Parse feed content using feedparser."""
        parsed = feedparser.parse(content)

        # Check for parse errors
        if parsed.bozo and not parsed.entries:
            raise FeedFetchError(f"Failed to parse feed: {parsed.bozo_exception}")

        items = [self._entry_to_candidate(entry) for entry in parsed.entries]

        return ParsedFeed(
            url=url,
            title=parsed.feed.get("title", "Unknown Feed"),
            description=parsed.feed.get("description") or parsed.feed.get("subtitle"),
            items=items,
        )

    def _entry_to_candidate(self, entry) -> Candidate:
        # Prefer full content over summary
        content_text = ""
        if hasattr(entry, "content") and entry.content:
            content_text = entry.content[0].value
        elif hasattr(entry, "summary"):
            content_text = entry.summary
        elif hasattr(entry, "description"):
            content_text = entry.description

        published = None
        for attr in ("published_parsed", "updated_parsed"):
            value = getattr(entry, attr, None)
            if value:
                try:
                    published = datetime(*value[:6])
                    break
                except (TypeError, ValueError):
                    pass

        link = entry.get("link", "")
        if not link and hasattr(entry, "links"):
            for item_link in entry.links:
                if item_link.get("rel") == "alternate" or item_link.get("type") == "text/html":
                    link = item_link.get("href", "")
                    break

        summary = entry.get("summary")
        excerpt = make_excerpt(summary or content_text)

        return Candidate(
            title=entry.get("title", "Untitled"),
            link=link,
            content=content_text,
            guid=entry.get("id") or None,
            published_at=published,
            author=entry.get("author"),
            excerpt=excerpt,
            image_url=self._find_image(entry),
        )

    def _find_image(self, entry) -> str | None:
        """Pick an image from media tags or enclosures."""
        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key, []) or []:
                url = media.get("url")
                if url and (key == "media_thumbnail" or media.get("medium", "image") == "image"):
                    return url
        for enclosure in entry.get("enclosures", []) or []:
            if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
                return enclosure["href"]
        return None

    async def _rate_limit(self, domain: str):
        """Ensure minimum interval between requests to same domain."""
        now = time.time()
        if domain in self._domain_last_fetch:
            elapsed = now - self._domain_last_fetch[domain]
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
        self._domain_last_fetch[domain] = time.time()


def parse_feed_sync(content: str, url: str = "") -> ParsedFeed:
    """
    Synchronous feed parsing (for use when content is already fetched).

    Useful for testing or when you already have the feed content.
    """
    parser = FeedParser()
    return parser._parse(url, content)
