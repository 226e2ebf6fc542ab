"""Absent-tolerant JSON document storage."""

from __future__ import annotations

import json
import logging
from typing import Any, List

from sqlalchemy.orm import Session, sessionmaker

from . import db

logger = logging.getLogger(__name__)

FEED_PAGES_KEY = "feed-pages-config"
SETTINGS_KEY = "newsfeed-settings"
WIDGETS_KEY = "widgets-data"
CACHE_KEY_PREFIX = "feed-cache-"


def cache_key(source_url: str) -> str:
    """Return the record key for a source URL. The raw URL is used as-is."""
    return CACHE_KEY_PREFIX + source_url


class Storage:
    """Durable key to JSON document store backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "Storage":
        engine = db.init_engine(connection_string)
        if engine is None:
            raise ValueError("A database connection string is required.")
        return cls(db.get_session_factory(engine))

    def load_json(self, key: str, default: Any = None) -> Any:
        """Return the decoded document under key.

        Missing records and records that are not valid JSON both yield default.
        """
        with self._session_factory() as session:
            raw = db.get_record(session, key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Discarding malformed record %s: %s", key, exc)
            return default

    def save_json(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._session_factory() as session:
            db.upsert_record(session, key, payload)
        logger.debug("Saved record %s (%d bytes)", key, len(payload))

    def delete(self, key: str) -> bool:
        with self._session_factory() as session:
            return db.delete_record(session, key)

    def keys(self, prefix: str = "") -> List[str]:
        with self._session_factory() as session:
            return db.list_keys(session, prefix)
