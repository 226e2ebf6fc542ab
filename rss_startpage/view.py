"""Read-only filtering and paging of an aggregated feed."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .models import FeedItem, UserState

ALL_SOURCES = "all"


def apply(
    items: Iterable[FeedItem],
    user_state: UserState,
    source_filter: Optional[str] = None,
    favorites_only: bool = False,
    unread_only: bool = False,
) -> List[FeedItem]:
    """Return the visible items in their original order.

    Filters compose by AND and are evaluated hidden, source, favourites,
    then unread.
    """
    visible = [item for item in items if item.id not in user_state.hidden]
    if source_filter and source_filter != ALL_SOURCES:
        visible = [item for item in visible if item.source == source_filter]
    if favorites_only:
        visible = [item for item in visible if item.id in user_state.favorites]
    if unread_only:
        visible = [item for item in visible if item.id not in user_state.read]
    return visible


def list_sources(items: Iterable[FeedItem]) -> List[str]:
    """Distinct source names in first-seen order."""
    sources: List[str] = []
    for item in items:
        if item.source not in sources:
            sources.append(item.source)
    return sources


def unread_count(items: Iterable[FeedItem], user_state: UserState) -> int:
    return sum(1 for item in items if item.id not in user_state.read)


@dataclass
class Pagination:
    items: List[FeedItem] = field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    start: int = 0
    end: int = 0


def paginate(items: Sequence[FeedItem], page: int, per_page: int) -> Pagination:
    if per_page <= 0:
        raise ValueError("per_page must be positive.")
    total_pages = math.ceil(len(items) / per_page)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    end = min(start + per_page, len(items))
    return Pagination(
        items=list(items[start:end]),
        page=page,
        total_pages=total_pages,
        start=start,
        end=end,
    )
