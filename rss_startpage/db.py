"""Database abstraction layer for durable start-page records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class RecordModel(Base):
    """One JSON document stored under a string key."""

    __tablename__ = "records"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    if connection_string in ("sqlite://", "sqlite:///:memory:"):
        # A single shared connection, otherwise each thread gets an empty database.
        engine = create_engine(
            connection_string,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def get_record(session: Session, key: str) -> Optional[str]:
    """Return the raw text stored under key, or None."""
    stmt = select(RecordModel).where(RecordModel.key == key)
    result = session.execute(stmt).scalar_one_or_none()
    if not result:
        return None
    return result.value


def upsert_record(session: Session, key: str, value: str) -> None:
    """Insert or replace the text stored under key."""
    stmt = select(RecordModel).where(RecordModel.key == key)
    existing = session.execute(stmt).scalar_one_or_none()

    if existing:
        existing.value = value
        existing.updated_at = datetime.now(timezone.utc)
    else:
        session.add(
            RecordModel(key=key, value=value, updated_at=datetime.now(timezone.utc))
        )

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def delete_record(session: Session, key: str) -> bool:
    """Delete the record under key. Returns True when something was removed."""
    stmt = select(RecordModel).where(RecordModel.key == key)
    existing = session.execute(stmt).scalar_one_or_none()
    if not existing:
        return False

    session.delete(existing)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    return True


def list_keys(session: Session, prefix: str = "") -> List[str]:
    """Return stored keys starting with prefix, sorted."""
    stmt = select(RecordModel.key).where(RecordModel.key.startswith(prefix))
    return sorted(session.execute(stmt).scalars().all())
