"""TTL cache of parsed feed items, one record per source URL."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .models import CacheEntry, FeedItem
from .storage import Storage, cache_key

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 30 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class FeedCache:
    """Read-through cache entries stored as ``{timestamp, data}`` documents."""

    def __init__(
        self,
        storage: Storage,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        if ttl_ms < 0:
            raise ValueError("Cache TTL must not be negative.")
        self._storage = storage
        self.ttl_ms = ttl_ms
        self._clock = clock

    def get(self, source_url: str) -> Optional[CacheEntry]:
        raw = self._storage.load_json(cache_key(source_url))
        if raw is None:
            return None
        try:
            timestamp = int(raw["timestamp"])
            items = [FeedItem.from_dict(item) for item in raw.get("data") or []]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring malformed cache entry for %s: %s", source_url, exc)
            return None
        return CacheEntry(source_url=source_url, timestamp=timestamp, items=items)

    def put(self, source_url: str, items: List[FeedItem]) -> CacheEntry:
        entry = CacheEntry(
            source_url=source_url, timestamp=self._clock(), items=list(items)
        )
        self._storage.save_json(
            cache_key(source_url),
            {
                "timestamp": entry.timestamp,
                "data": [item.to_dict() for item in entry.items],
            },
        )
        logger.debug("Cached %d items for %s", len(entry.items), source_url)
        return entry

    def is_fresh(self, entry: CacheEntry, ttl_ms: Optional[int] = None) -> bool:
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        return self._clock() - entry.timestamp <= ttl

    def invalidate(self, source_url: str) -> None:
        if self._storage.delete(cache_key(source_url)):
            logger.debug("Invalidated cache entry for %s", source_url)
