"""Feed retrieval and parsing helpers."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

import feedparser
import requests
from bs4 import BeautifulSoup

from .errors import NetworkError, ParseError
from .models import EPOCH_MIN, FeedItem

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "rss-startpage/0.1 (+personal start page)"


def to_datetime(value: Optional[time.struct_time]) -> datetime:
    """Convert feedparser timestamps (UTC struct_time) to aware datetimes."""
    if value is None:
        return EPOCH_MIN
    try:
        return datetime(*value[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return EPOCH_MIN


def domain_from_url(url: str) -> Optional[str]:
    """Return the hostname of url without a leading ``www.``."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return re.sub(r"^www\.", "", hostname)


def _is_http_url(value: str) -> bool:
    try:
        result = urlparse(value)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def strip_html(raw_value: str) -> str:
    """Return text content extracted from HTML fragments."""
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


class FeedFetcher:
    """Download one RSS/Atom document and normalise its entries."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch(self, source_url: str) -> List[FeedItem]:
        logger.info("Fetching feed %s", source_url)
        content = self._download(source_url)
        items = self.parse(source_url, content)
        logger.info("Collected %d entries from feed %s", len(items), source_url)
        return items

    def _download(self, source_url: str) -> bytes:
        try:
            response = requests.get(
                source_url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"Failed to fetch {source_url}: {exc}") from exc
        return response.content

    def parse(self, source_url: str, content: bytes) -> List[FeedItem]:
        parsed = feedparser.parse(content)
        feed_meta = parsed.get("feed") or {}

        if not parsed.entries and (parsed.get("bozo") or not feed_meta.get("title")):
            reason = parsed.get("bozo_exception") or "no feed title or entries"
            raise ParseError(f"{source_url} is not a valid RSS or Atom feed: {reason}")
        if parsed.get("bozo"):
            logger.debug(
                "Feed %s has formatting issues: %s",
                source_url,
                parsed.get("bozo_exception"),
            )

        source = (
            (feed_meta.get("title") or "").strip()
            or domain_from_url(source_url)
            or source_url
        )

        items: List[FeedItem] = []
        for entry in parsed.entries:
            link = entry.get("link")
            item_id = entry.get("id") or entry.get("guid") or link
            title = entry.get("title")

            if not item_id or not title:
                logger.debug("Skipping entry without id or title in feed %s", source_url)
                continue

            summary = entry.get("summary")
            if not summary:
                content_blocks = entry.get("content")
                if content_blocks:
                    try:
                        summary = content_blocks[0].get("value")
                    except (TypeError, KeyError, IndexError, AttributeError):
                        summary = None
            if summary:
                summary = strip_html(summary)

            item_id = str(item_id).strip()
            if not link:
                # Permalink guids double as links; opaque ids point at the feed.
                link = item_id if _is_http_url(item_id) else source_url

            published = None
            for attr in ("published_parsed", "updated_parsed", "created_parsed"):
                published = entry.get(attr)
                if published:
                    break

            items.append(
                FeedItem(
                    id=item_id,
                    title=strip_html(title) or title,
                    source=source,
                    published=to_datetime(published),
                    link=link,
                    summary=summary or None,
                )
            )

        return items
