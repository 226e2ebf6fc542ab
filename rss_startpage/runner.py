"""High-level orchestration for the rss_startpage application."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .aggregator import DEFAULT_CONCURRENCY, FeedAggregator
from .cache import DEFAULT_TTL_MS, FeedCache
from .config import parse_feeds_config
from .feeds import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, FeedFetcher
from .models import AggregateResult, FeedItem, FeedPage
from .registry import FeedSourceRegistry
from .state import DEFAULT_THEME, UserStateStore
from .storage import Storage
from . import view
from .widgets import WidgetStore

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Runtime options for executing the application."""

    connection_string: str
    page_id: Optional[str] = None
    refresh: bool = False
    ttl_ms: int = DEFAULT_TTL_MS
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    user_agent: Optional[str] = None
    theme: str = DEFAULT_THEME
    feeds_file: Optional[str] = None
    source_filter: Optional[str] = None
    favorites_only: bool = False
    unread_only: bool = False
    export_widgets_path: Optional[str] = None


@dataclass
class RunResult:
    """Returned data after executing the app."""

    output_text: str
    results: Dict[str, AggregateResult] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return any(result.errors for result in self.results.values())


class Startpage:
    """One profile's registry, cache, aggregator, user state and widgets."""

    def __init__(
        self,
        storage: Storage,
        ttl_ms: int = DEFAULT_TTL_MS,
        fetcher: Optional[FeedFetcher] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        theme: str = DEFAULT_THEME,
    ):
        self.storage = storage
        self.registry = FeedSourceRegistry(storage)
        self.cache = FeedCache(storage, ttl_ms=ttl_ms)
        self.fetcher = fetcher or FeedFetcher()
        self.aggregator = FeedAggregator(
            self.cache, self.fetcher, concurrency=concurrency
        )
        self.user_state = UserStateStore(storage, default_theme=theme)
        self.widgets = WidgetStore(storage)

    @classmethod
    def from_run_config(cls, config: RunConfig) -> "Startpage":
        fetcher = FeedFetcher(
            timeout=config.timeout,
            user_agent=config.user_agent or DEFAULT_USER_AGENT,
        )
        return cls(
            Storage.from_connection_string(config.connection_string),
            ttl_ms=config.ttl_ms,
            fetcher=fetcher,
            concurrency=config.concurrency,
            theme=config.theme,
        )

    def load(self) -> None:
        self.registry.load()
        self.user_state.load()
        self.widgets.load()

    def page_feed(
        self,
        page: FeedPage,
        refresh: bool = False,
        source_filter: Optional[str] = None,
        favorites_only: bool = False,
        unread_only: bool = False,
    ) -> Tuple[AggregateResult, List[FeedItem]]:
        """Aggregate a page and return the result with its visible items."""
        if refresh:
            result = self.aggregator.refresh(page)
        else:
            result = self.aggregator.aggregate(page)
        visible = view.apply(
            result.items,
            self.user_state.state,
            source_filter=source_filter,
            favorites_only=favorites_only,
            unread_only=unread_only,
        )
        return result, visible


def _select_pages(app: Startpage, page_id: Optional[str]) -> List[FeedPage]:
    if page_id is None:
        return app.registry.pages
    try:
        return [app.registry.get_page(page_id)]
    except KeyError as exc:
        raise ValueError(str(exc.args[0])) from None


def execute(config: RunConfig) -> RunResult:
    """Run the application logic and return the result payload."""
    app = Startpage.from_run_config(config)
    app.load()

    if config.feeds_file:
        app.registry.import_feeds(parse_feeds_config(config.feeds_file))

    pages = _select_pages(app, config.page_id)
    results: Dict[str, AggregateResult] = {}
    output = []

    for page in pages:
        result, visible = app.page_feed(
            page,
            refresh=config.refresh,
            source_filter=config.source_filter,
            favorites_only=config.favorites_only,
            unread_only=config.unread_only,
        )
        results[page.id] = result
        payload = result.to_dict()
        payload["name"] = page.name
        payload["items"] = [item.to_dict() for item in visible]
        payload["sources"] = view.list_sources(result.items)
        payload["unread"] = view.unread_count(visible, app.user_state.state)
        output.append(payload)

    if config.export_widgets_path:
        location = Path(config.export_widgets_path)
        if location.parent and not location.parent.exists():
            location.parent.mkdir(parents=True, exist_ok=True)
        location.write_text(app.widgets.export(), encoding="utf-8")
        logger.info("Exported %d widgets to %s", len(app.widgets.widgets), location)

    return RunResult(
        output_text=json.dumps(output, indent=2, ensure_ascii=False),
        results=results,
    )
