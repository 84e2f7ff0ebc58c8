"""
Content Extractor - Pull full article bodies from the pages feed items link to.

Handles:
- HTTP fetching with browser-like headers plus per-feed headers/cookies
- Reader-mode extraction with trafilatura
- Custom CSS selector extraction with BeautifulSoup
- Blocking private/internal network targets

Never raises: every failure is reported in ExtractionResult.error so a single
bad page cannot abort a feed refresh.
"""

import asyncio
import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import aiohttp
import trafilatura
from bs4 import BeautifulSoup

from .feeds import make_excerpt

if TYPE_CHECKING:
    from .services.settings_cascade import EffectiveFeedSettings

logger = logging.getLogger(__name__)

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "metadata",
    "metadata.google.internal",
}
BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")


class BlockedURLError(Exception):
    """Raised when a URL points at a private or internal address."""
    pass


@dataclass
class ExtractionResult:
    """Outcome of extracting one page."""
    success: bool
    method: str
    content: str | None = None
    title: str | None = None
    excerpt: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    image_url: str | None = None
    error: str | None = None


def _is_blocked_ip(value: str) -> bool:
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return False
    return (
        ip.is_private or ip.is_loopback or ip.is_link_local
        or ip.is_reserved or ip.is_multicast or ip.is_unspecified
    )


async def check_url(url: str, resolve_dns: bool = True) -> None:
    """
    Reject URLs that target internal infrastructure.

    Raises:
        BlockedURLError: If the scheme, host or resolved address is not allowed
    """
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https"):
        raise BlockedURLError(f"URL scheme '{parsed.scheme}' is not allowed")
    if not parsed.hostname:
        raise BlockedURLError("URL must include a hostname")

    hostname = parsed.hostname.lower()
    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(BLOCKED_SUFFIXES):
        raise BlockedURLError(f"Access to '{hostname}' is not allowed")
    if _is_blocked_ip(hostname):
        raise BlockedURLError(f"Access to IP address '{hostname}' is not allowed")

    if resolve_dns:
        loop = asyncio.get_running_loop()
        try:
            addrinfo = await loop.getaddrinfo(hostname, parsed.port or 80, proto=socket.IPPROTO_TCP)
        except socket.gaierror:
            # Unresolvable hosts fail at fetch time
            return
        for _, _, _, _, sockaddr in addrinfo:
            if _is_blocked_ip(sockaddr[0]):
                raise BlockedURLError(
                    f"Hostname '{hostname}' resolves to blocked address '{sockaddr[0]}'"
                )


class ContentExtractor:
    """Fetches article pages and extracts their main content."""

    def __init__(
        self,
        timeout: int = 30,
        user_agent: str | None = None,
        min_content_length: int = 200,
        resolve_dns: bool = True,
    ):
        self.timeout = timeout
        self.min_content_length = min_content_length
        self.resolve_dns = resolve_dns
        self.headers = {
            "User-Agent": user_agent or (
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/120.0.0.0 Safari/537.36"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def extract_content(
        self,
        url: str,
        feed_id: int | None = None,
        settings: "EffectiveFeedSettings | None" = None,
    ) -> ExtractionResult:
        """
        Extract the article at `url` using the feed's effective settings.

        Args:
            url: Article URL
            feed_id: Owning feed, for log context
            settings: Effective settings (method, selector, headers, cookies, timeout)

        Returns:
            ExtractionResult; success is False with an error message on failure
        """
        method = settings.extraction_method if settings else "readability"
        try:
            await check_url(url, resolve_dns=self.resolve_dns)
            html, final_url = await self._download(url, settings)
        except BlockedURLError as e:
            return ExtractionResult(success=False, method=method, error=str(e))
        except aiohttp.ClientResponseError as e:
            return ExtractionResult(success=False, method=method, error=f"HTTP {e.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return ExtractionResult(
                success=False, method=method, error=str(e) or type(e).__name__
            )
        except Exception as e:
            # Malformed URLs (bad port) and undecodable bodies
            logger.warning(f"Unexpected error fetching {url} (feed {feed_id}): {e}")
            return ExtractionResult(
                success=False, method=method, error=str(e) or type(e).__name__
            )

        try:
            if method == "custom":
                selector = settings.custom_selector if settings else None
                if not selector:
                    return ExtractionResult(
                        success=False, method=method, error="No custom selector configured"
                    )
                result = self._extract_with_selector(html, selector)
            else:
                result = self._extract_readable(final_url, html)
        except Exception as e:
            logger.warning(f"Content parsing failed for {url} (feed {feed_id}): {e}")
            return ExtractionResult(
                success=False, method=method, error=str(e) or type(e).__name__
            )

        if not result.success:
            logger.debug(f"Extraction failed for {url} (feed {feed_id}): {result.error}")
        return result

    async def _download(
        self,
        url: str,
        settings: "EffectiveFeedSettings | None"
    ) -> tuple[str, str]:
        """GET a page and return (html, final URL after redirects)."""
        headers = dict(self.headers)
        cookies = None
        timeout = self.timeout
        if settings:
            headers.update(settings.headers or {})
            cookies = settings.cookies or None
            timeout = settings.extraction_timeout or self.timeout

        async with aiohttp.ClientSession(headers=headers, cookies=cookies) as session:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=True
            ) as resp:
                resp.raise_for_status()
                return await resp.text(), str(resp.url)

    def _extract_readable(self, url: str, html: str) -> ExtractionResult:
        """Reader-mode extraction with trafilatura, BeautifulSoup as fallback."""
        content = trafilatura.extract(
            html,
            url=url,
            output_format="html",
            include_links=True,
            include_images=False,
            include_tables=True,
            favor_recall=True,
        )
        metadata = trafilatura.extract_metadata(html, default_url=url)
        soup = BeautifulSoup(html, "html.parser")

        if not content or not self._has_sufficient_content(content):
            content = self._extract_with_beautifulsoup(soup)
        if not content or not self._has_sufficient_content(content):
            return ExtractionResult(
                success=False, method="readability", error="No readable content found"
            )

        title = metadata.title if metadata and metadata.title else self._page_title(soup)
        published_at = None
        if metadata and metadata.date:
            published_at = _parse_date(metadata.date)

        return ExtractionResult(
            success=True,
            method="readability",
            content=content,
            title=title,
            excerpt=(metadata.description if metadata and metadata.description else None)
            or make_excerpt(content),
            author=metadata.author if metadata else None,
            published_at=published_at,
            image_url=(metadata.image if metadata and metadata.image else None)
            or self._og_image(soup),
        )

    def _extract_with_selector(self, html: str, selector: str) -> ExtractionResult:
        """Extract the elements matching a feed's custom CSS selector."""
        soup = BeautifulSoup(html, "html.parser")
        elements = soup.select(selector)
        if not elements:
            return ExtractionResult(
                success=False, method="custom", error=f"Selector '{selector}' matched nothing"
            )
        content = "\n".join(str(el) for el in elements)
        return ExtractionResult(
            success=True,
            method="custom",
            content=content,
            title=self._page_title(soup),
            excerpt=make_excerpt(content),
            image_url=self._og_image(soup),
        )

    def _extract_with_beautifulsoup(self, soup: BeautifulSoup) -> str:
        """Fallback extraction using BeautifulSoup heuristics."""
        for tag in soup.find_all([
            "script", "style", "nav", "header", "footer", "aside",
            "noscript", "iframe", "form", "button", "input"
        ]):
            tag.decompose()

        article = (
            soup.find("article") or
            soup.find(class_=re.compile(r"^(article|post|post-content|entry-content|story)$", re.I)) or
            soup.find(attrs={"role": "main"}) or
            soup.find("main") or
            soup.body
        )
        if not article:
            return ""

        parts = [
            str(elem)
            for elem in article.find_all(["p", "h1", "h2", "h3", "h4", "ul", "ol", "blockquote", "pre"])
            if elem.get_text(strip=True)
        ]
        return re.sub(r"\n{3,}", "\n\n", "\n".join(parts))

    def _has_sufficient_content(self, content: str) -> bool:
        text = BeautifulSoup(content, "html.parser").get_text(strip=True)
        return len(text) >= self.min_content_length

    def _page_title(self, soup: BeautifulSoup) -> str | None:
        if title_tag := soup.find("title"):
            title = title_tag.get_text(strip=True)
            # Drop trailing " | Site Name"
            return re.sub(r"\s*[|\-–—]\s*[^|\-–—]+$", "", title) or title
        if h1 := soup.find("h1"):
            return h1.get_text(strip=True)
        return None

    def _og_image(self, soup: BeautifulSoup) -> str | None:
        if og_image := soup.find("meta", property="og:image"):
            return og_image.get("content")
        return None


def _parse_date(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # Stored timestamps are naive local time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
