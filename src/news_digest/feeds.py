"""Feed client: fetch and normalize the external news feed for a query."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from urllib.parse import quote

import feedparser  # type: ignore
import httpx

from .config import Settings, get_settings
from .errors import FeedUnavailable
from .models import FeedItem

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "Google News"
_SOURCE_TEXT_KEYS = ("title", "value", "_", "#text", "text")


def build_feed_url(base_url: str, topic: str, language: str, country: str) -> str:
    """Return the search feed URL for a topic in a language/country locale."""
    lang = language.lower()
    region = country.upper()
    return (
        f"{base_url}?q={quote(topic, safe='')}"
        f"&hl={lang}-{region}&gl={region}&ceid={region}:{lang}"
    )


def normalize_source(raw: Any, default: str = DEFAULT_SOURCE) -> str:
    """
    Resolve a feed entry's source to a plain string.

    Sources arrive either as a bare string or as a nested record holding the
    display text; anything blank falls back to `default`.
    """
    if isinstance(raw, str):
        return raw.strip() or default
    if isinstance(raw, Mapping):
        for key in _SOURCE_TEXT_KEYS:
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


def _entry_to_item(entry: Mapping[str, Any]) -> FeedItem:
    published = entry.get("published") or entry.get("updated") or None
    return FeedItem(
        title=(entry.get("title") or "").strip(),
        link=(entry.get("link") or "").strip() or None,
        published_at=published,
        source=normalize_source(entry.get("source")),
    )


def parse_feed(content: bytes | str, max_items: int = 5) -> List[FeedItem]:
    """Parse an RSS/Atom document into at most `max_items` feed items."""
    feed = feedparser.parse(content)
    entries = getattr(feed, "entries", None) or []
    if getattr(feed, "bozo", 0) and not entries:
        exc = getattr(feed, "bozo_exception", None)
        raise FeedUnavailable(f"Invalid RSS/Atom feed ({exc})")
    return [_entry_to_item(entry) for entry in entries[:max_items]]


class FeedClient:
    """Retrieves news items; every failure degrades to an empty result."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.feed_timeout,
                headers={"User-Agent": self.settings.feed_user_agent},
                follow_redirects=True,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as exc:
            raise FeedUnavailable(f"Network error fetching {url}: {exc}") from exc

    async def fetch_items(self, topic: str, language: str, country: str) -> List[FeedItem]:
        url = build_feed_url(self.settings.feed_base_url, topic, language, country)
        try:
            content = await self._download(url)
            items = parse_feed(content, max_items=self.settings.feed_max_items)
        except FeedUnavailable as exc:
            logger.warning("Feed unavailable, continuing with no items: %s", exc)
            return []
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Error parsing feed %s: %s", url, exc)
            return []
        logger.info("Fetched %d feed item(s) for %r", len(items), topic)
        return items
