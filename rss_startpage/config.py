"""Configuration loading: application XML and OPML subscription lists."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree as ET

from .models import FeedConfig

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING = "sqlite:///startpage.db"


@dataclass
class CacheConfig:
    ttl_minutes: float = 30.0

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_minutes * 60 * 1000)


@dataclass
class FetchConfig:
    timeout: float = 10.0
    concurrency: int = 8
    user_agent: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: str = DEFAULT_CONNECTION_STRING


@dataclass
class AppConfig:
    feeds_file: Optional[str] = None
    theme: str = "light"
    cache: CacheConfig = field(default_factory=CacheConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def parse_feeds_config(path: str) -> List[FeedConfig]:
    """Parse an OPML subscription list into feed definitions.

    Each feed takes the title of its nearest enclosing outline as category.
    """
    logger.info("Loading feed subscriptions from %s", path)
    root = ET.parse(path).getroot()
    body = root.find("body")
    if body is None:
        raise ValueError(f"{path} is missing the <body> section.")

    feeds: List[FeedConfig] = []

    def walk(outline: ET.Element, category: Optional[str]) -> None:
        title = outline.attrib.get("title") or outline.attrib.get("text")
        feed_url = outline.attrib.get("xmlUrl")
        if feed_url:
            feeds.append(
                FeedConfig(
                    category=category or title or "Feeds",
                    title=title or feed_url,
                    url=feed_url.strip(),
                )
            )
            return
        for child in outline.findall("outline"):
            walk(child, title or category)

    for outline in body.findall("outline"):
        walk(outline, None)

    logger.info("Loaded %d feed subscriptions", len(feeds))
    return feeds


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _resolve_connection_string(base_path: Path, value: str) -> str:
    """Make relative sqlite database paths relative to the config file."""
    prefix = "sqlite:///"
    if value.startswith(prefix) and value != "sqlite:///:memory:":
        db_path = value[len(prefix):]
        if db_path and not db_path.startswith("/"):
            return prefix + _resolve_path(base_path, db_path)
    return value


def parse_app_config(path: str) -> AppConfig:
    """Parse the application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    root = ET.parse(config_path).getroot()

    config = AppConfig()

    feeds_file = root.findtext("feeds")
    if feeds_file and feeds_file.strip():
        config.feeds_file = _resolve_path(config_path, feeds_file.strip())

    config.theme = (root.findtext("theme") or config.theme).strip()

    cache_node = root.find("cache")
    if cache_node is not None:
        ttl = cache_node.findtext("ttl-minutes")
        if ttl:
            config.cache.ttl_minutes = float(ttl)
            if config.cache.ttl_minutes < 0:
                raise ValueError("Cache ttl-minutes must not be negative.")

    fetch_node = root.find("fetch")
    if fetch_node is not None:
        config.fetch.timeout = float(fetch_node.findtext("timeout", "10"))
        config.fetch.concurrency = int(fetch_node.findtext("concurrency", "8"))
        user_agent = fetch_node.findtext("user-agent")
        if user_agent:
            config.fetch.user_agent = user_agent.strip()

    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    db_node = root.find("database")
    if db_node is not None:
        connection_string = db_node.findtext("connection-string")
        if connection_string:
            config.database.connection_string = _resolve_connection_string(
                config_path, connection_string.strip()
            )

    return config
