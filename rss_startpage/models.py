"""Shared data models for rss_startpage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string into an aware datetime, defaulting to EPOCH_MIN."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return EPOCH_MIN
    else:
        return EPOCH_MIN
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class FeedConfig:
    """A feed definition imported from an OPML subscription list."""

    category: str
    title: str
    url: str


@dataclass(frozen=True)
class FeedItem:
    """A single normalised post from a feed."""

    id: str
    title: str
    source: str
    published: datetime
    link: str
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "source": self.source,
            "published": self.published.isoformat(),
            "link": self.link,
        }
        if self.summary is not None:
            payload["summary"] = self.summary
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedItem":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            source=str(data.get("source") or ""),
            published=parse_timestamp(data.get("published")),
            link=str(data.get("link") or ""),
            summary=data.get("summary"),
        )


@dataclass
class FeedPage:
    """A user-defined group of feed sources displayed together."""

    id: str
    name: str
    order: int
    feed_sources: List[str] = field(default_factory=list)
    data: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "feedSources": list(self.feed_sources),
            "data": list(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedPage":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            order=int(data.get("order", 0)),
            feed_sources=[str(url) for url in data.get("feedSources") or []],
            data=list(data.get("data") or []),
        )


@dataclass
class CacheEntry:
    """Timestamped snapshot of the items parsed from one source."""

    source_url: str
    timestamp: int
    items: List[FeedItem] = field(default_factory=list)


@dataclass
class UserState:
    """Read, favourite and hidden item ids plus display settings."""

    read: set = field(default_factory=set)
    favorites: set = field(default_factory=set)
    hidden: set = field(default_factory=set)
    theme: str = "light"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "read": sorted(self.read),
            "favorites": sorted(self.favorites),
            "hidden": sorted(self.hidden),
            "theme": self.theme,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_theme: str = "light") -> "UserState":
        return cls(
            read={str(item) for item in data.get("read") or []},
            favorites={str(item) for item in data.get("favorites") or []},
            hidden={str(item) for item in data.get("hidden") or []},
            theme=str(data.get("theme") or default_theme),
        )


@dataclass
class SourceError:
    """Per-source failure reported alongside an aggregated page."""

    source_url: str
    error_kind: str
    message: str = ""
    stale: bool = False


@dataclass
class AggregateResult:
    """Merged feed for a page plus any per-source failures."""

    page_id: str
    items: List[FeedItem] = field(default_factory=list)
    errors: List[SourceError] = field(default_factory=list)
    fetched: List[str] = field(default_factory=list)

    @property
    def stale_sources(self) -> List[str]:
        return [error.source_url for error in self.errors if error.stale]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page_id,
            "items": [item.to_dict() for item in self.items],
            "errors": [
                {
                    "sourceUrl": error.source_url,
                    "errorKind": error.error_kind,
                    "message": error.message,
                    "stale": error.stale,
                }
                for error in self.errors
            ],
        }
