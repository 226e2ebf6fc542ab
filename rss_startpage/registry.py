"""Feed page configuration: pages and their ordered source URLs."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from .errors import InvalidReorder, InvalidURL, LimitExceeded
from .models import FeedConfig, FeedPage
from .storage import FEED_PAGES_KEY, Storage

logger = logging.getLogger(__name__)

MAX_PAGES = 10
DEFAULT_PAGE_ID = "feeds"
DEFAULT_PAGE_NAME = "Feeds"


def default_pages() -> List[FeedPage]:
    return [FeedPage(id=DEFAULT_PAGE_ID, name=DEFAULT_PAGE_NAME, order=0)]


def validate_http_url(url: str) -> str:
    """Return the stripped URL or raise InvalidURL unless it is absolute http(s)."""
    candidate = (url or "").strip()
    try:
        result = urlparse(candidate)
    except ValueError:
        raise InvalidURL(f"Invalid URL format: {url!r}")
    if result.scheme not in ("http", "https"):
        raise InvalidURL(f"Only http and https URLs are supported: {url!r}")
    if not result.netloc:
        raise InvalidURL(f"Invalid URL format: {url!r}")
    return candidate


class FeedSourceRegistry:
    """Ordered feed pages persisted under the feed-pages-config record."""

    def __init__(self, storage: Storage, max_pages: int = MAX_PAGES):
        self._storage = storage
        self._max_pages = max_pages
        self._pages: Dict[str, FeedPage] = {}

    def load(self) -> List[FeedPage]:
        raw = self._storage.load_json(FEED_PAGES_KEY)
        pages: List[FeedPage] = []
        if isinstance(raw, list):
            for item in raw:
                try:
                    pages.append(FeedPage.from_dict(item))
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed feed page %r: %s", item, exc)
        if not pages:
            logger.info("No feed pages configured; using the default page")
            pages = default_pages()
        pages.sort(key=lambda page: page.order)
        if len(pages) > self._max_pages:
            logger.warning(
                "Dropping %d feed pages beyond the limit of %d",
                len(pages) - self._max_pages,
                self._max_pages,
            )
            pages = pages[: self._max_pages]
        for page in pages:
            page.feed_sources = self._clean_sources(page)
        self._pages = {page.id: page for page in pages}
        logger.debug("Loaded %d feed pages", len(self._pages))
        return self.pages

    @staticmethod
    def _clean_sources(page: FeedPage) -> List[str]:
        sources: List[str] = []
        for url in page.feed_sources:
            try:
                url = validate_http_url(url)
            except InvalidURL as exc:
                logger.warning("Dropping source on page %s: %s", page.id, exc)
                continue
            if url in sources:
                logger.warning("Dropping duplicate source %s on page %s", url, page.id)
                continue
            sources.append(url)
        return sources

    @property
    def pages(self) -> List[FeedPage]:
        return sorted(self._pages.values(), key=lambda page: page.order)

    def get_page(self, page_id: str) -> FeedPage:
        try:
            return self._pages[page_id]
        except KeyError:
            raise KeyError(f"Unknown feed page: {page_id}") from None

    def find_page_by_name(self, name: str) -> Optional[FeedPage]:
        for page in self.pages:
            if page.name == name:
                return page
        return None

    def add_page(self, name: str) -> FeedPage:
        if len(self._pages) >= self._max_pages:
            raise LimitExceeded(f"At most {self._max_pages} feed pages are allowed.")

        page_id = self._new_page_id()
        order = max((page.order for page in self._pages.values()), default=-1) + 1
        page = FeedPage(id=page_id, name=name.strip() or page_id, order=order)
        self._pages[page_id] = page
        self._persist()
        logger.info("Added feed page '%s' (%s)", page.name, page.id)
        return page

    def remove_page(self, page_id: str) -> bool:
        if self._pages.pop(page_id, None) is None:
            return False
        self._persist()
        logger.info("Removed feed page %s", page_id)
        return True

    def rename_page(self, page_id: str, name: str) -> None:
        page = self.get_page(page_id)
        name = name.strip()
        if not name or name == page.name:
            return
        page.name = name
        self._persist()

    def add_source(self, page_id: str, url: str) -> bool:
        """Append url to the page. Returns False if it was already present."""
        url = validate_http_url(url)
        page = self.get_page(page_id)
        if url in page.feed_sources:
            logger.debug("Ignoring duplicate source %s on page %s", url, page_id)
            return False
        page.feed_sources.append(url)
        self._persist()
        logger.info("Added source %s to page %s", url, page_id)
        return True

    def remove_source(self, page_id: str, url: str) -> bool:
        url = (url or "").strip()
        page = self.get_page(page_id)
        if url not in page.feed_sources:
            return False
        page.feed_sources.remove(url)
        self._persist()
        logger.info("Removed source %s from page %s", url, page_id)
        return True

    def reorder_pages(self, new_order: Sequence[str]) -> None:
        new_order = list(new_order)
        if len(new_order) != len(self._pages) or set(new_order) != set(self._pages):
            raise InvalidReorder(
                "Page order must be a permutation of the existing page ids."
            )
        if [page.id for page in self.pages] == new_order and all(
            self._pages[page_id].order == index
            for index, page_id in enumerate(new_order)
        ):
            return
        for index, page_id in enumerate(new_order):
            self._pages[page_id].order = index
        self._persist()

    def import_feeds(self, feeds: Iterable[FeedConfig]) -> int:
        """Create one page per OPML category and add its feeds.

        Categories beyond the page limit are skipped. Returns the number of
        sources added.
        """
        added = 0
        for feed in feeds:
            page = self.find_page_by_name(feed.category)
            if page is None:
                if len(self._pages) >= self._max_pages:
                    logger.warning(
                        "Page limit reached; skipping feed %s in category '%s'",
                        feed.url,
                        feed.category,
                    )
                    continue
                page = self.add_page(feed.category)
            try:
                if self.add_source(page.id, feed.url):
                    added += 1
            except InvalidURL as exc:
                logger.warning("Skipping imported feed: %s", exc)
        logger.info("Imported %d feed sources", added)
        return added

    def _new_page_id(self) -> str:
        while True:
            page_id = f"page-{uuid.uuid4().hex[:8]}"
            if page_id not in self._pages:
                return page_id

    def _persist(self) -> None:
        self._storage.save_json(
            FEED_PAGES_KEY, [page.to_dict() for page in self.pages]
        )
