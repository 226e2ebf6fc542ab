"""Fetch-or-reuse-cache aggregation of every source on a feed page."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Dict, Iterable, List, Optional

from .cache import FeedCache
from .errors import NetworkError, ParseError
from .feeds import FeedFetcher
from .models import AggregateResult, CacheEntry, FeedItem, FeedPage, SourceError

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


def dedupe_items(items: Iterable[FeedItem]) -> List[FeedItem]:
    """Keep the first occurrence of every item id, preserving order."""
    seen_ids = set()
    unique_items: List[FeedItem] = []
    for item in items:
        if item.id in seen_ids:
            continue
        seen_ids.add(item.id)
        unique_items.append(item)
    return unique_items


def sort_items(items: Iterable[FeedItem]) -> List[FeedItem]:
    """Newest first; equal timestamps keep their relative order."""
    return sorted(items, key=lambda item: item.published, reverse=True)


class FeedAggregator:
    """Produce one deduplicated, time-ordered collection per feed page."""

    def __init__(
        self,
        cache: FeedCache,
        fetcher: FeedFetcher,
        ttl_ms: Optional[int] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.ttl_ms = cache.ttl_ms if ttl_ms is None else ttl_ms
        self.concurrency = max(1, concurrency)
        self._inflight: Dict[str, concurrent.futures.Future] = {}
        self._lock = threading.Lock()

    def aggregate(self, page: FeedPage) -> AggregateResult:
        sources = list(page.feed_sources)
        resolved: Dict[str, List[FeedItem]] = {}
        stale_entries: Dict[str, CacheEntry] = {}
        to_fetch: List[str] = []

        for url in sources:
            entry = self.cache.get(url)
            if entry is not None and self.cache.is_fresh(entry, self.ttl_ms):
                logger.debug("Cache hit for %s", url)
                resolved[url] = entry.items
                continue
            if entry is not None:
                stale_entries[url] = entry
            to_fetch.append(url)

        result = AggregateResult(page_id=page.id)

        if to_fetch:
            logger.info(
                "Fetching %d of %d sources for page %s",
                len(to_fetch),
                len(sources),
                page.id,
            )
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=min(self.concurrency, len(to_fetch))
            ) as executor:
                futures = {url: self._submit(executor, url) for url in to_fetch}
                concurrent.futures.wait(futures.values())

            for url in to_fetch:
                try:
                    items = futures[url].result()
                except (NetworkError, ParseError) as exc:
                    kind, message = exc.kind, str(exc)
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Unexpected failure while fetching %s", url)
                    kind, message = ParseError.kind, str(exc)
                else:
                    self.cache.put(url, items)
                    resolved[url] = items
                    result.fetched.append(url)
                    continue

                stale = stale_entries.get(url)
                if stale is not None:
                    logger.warning(
                        "Serving stale cache for %s after %s: %s", url, kind, message
                    )
                    resolved[url] = stale.items
                else:
                    logger.warning("Source %s contributed no items: %s", url, message)
                result.errors.append(
                    SourceError(
                        source_url=url,
                        error_kind=kind,
                        message=message,
                        stale=stale is not None,
                    )
                )

        pool = [item for url in sources for item in resolved.get(url, [])]
        result.items = sort_items(dedupe_items(pool))
        logger.info(
            "Page %s: %d items from %d sources (%d errors)",
            page.id,
            len(result.items),
            len(sources),
            len(result.errors),
        )
        return result

    def refresh(self, page: FeedPage) -> AggregateResult:
        """Drop every cached source of the page and aggregate from the network."""
        logger.info("Manual refresh of page %s", page.id)
        for url in page.feed_sources:
            self.cache.invalidate(url)
        return self.aggregate(page)

    def needs_refresh(self, page: FeedPage) -> bool:
        for url in page.feed_sources:
            entry = self.cache.get(url)
            if entry is None or not self.cache.is_fresh(entry, self.ttl_ms):
                return True
        return False

    def auto_refresh(self, page: FeedPage) -> Optional[AggregateResult]:
        """Aggregate only when some source's TTL has elapsed."""
        if not self.needs_refresh(page):
            logger.debug("Page %s is fresh; skipping background refresh", page.id)
            return None
        return self.aggregate(page)

    def aggregate_all(self, pages: Iterable[FeedPage]) -> Dict[str, AggregateResult]:
        return {page.id: self.aggregate(page) for page in pages}

    def _submit(
        self, executor: concurrent.futures.Executor, url: str
    ) -> concurrent.futures.Future:
        with self._lock:
            future = self._inflight.get(url)
            if future is not None:
                logger.debug("Joining in-flight fetch for %s", url)
                return future
            future = executor.submit(self.fetcher.fetch, url)
            self._inflight[url] = future
        future.add_done_callback(lambda done, url=url: self._forget(url, done))
        return future

    def _forget(self, url: str, future: concurrent.futures.Future) -> None:
        with self._lock:
            if self._inflight.get(url) is future:
                del self._inflight[url]
