"""Database-backed feed store."""

from __future__ import annotations

import concurrent.futures
import logging
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import CachedFeed, LocalFeedItem
from .policy import as_utc

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class CacheModel(Base):
    """Write time of the cached feed. At most one row exists."""

    __tablename__ = "feed_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)


class CacheItemModel(Base):
    """A single cached feed item."""

    __tablename__ = "feed_cache_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    position = Column(Integer, nullable=False)
    item_id = Column(String(36), nullable=False)
    url = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(Text, nullable=True)


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    kwargs = {}
    if connection_string.startswith("sqlite"):
        # Store operations run on a worker thread.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in connection_string or connection_string == "sqlite://":
            kwargs["poolclass"] = StaticPool
    engine = create_engine(connection_string, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def delete_cached_feed(session: Session) -> None:
    session.execute(delete(CacheItemModel))
    session.execute(delete(CacheModel))
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def insert_feed(
    session: Session, feed: Sequence[LocalFeedItem], timestamp: datetime
) -> None:
    """Replace the cached feed in a single transaction."""
    session.execute(delete(CacheItemModel))
    session.execute(delete(CacheModel))
    session.add(CacheModel(timestamp=as_utc(timestamp)))
    for position, item in enumerate(feed):
        session.add(
            CacheItemModel(
                position=position,
                item_id=str(item.id),
                url=item.url,
                description=item.description,
                location=item.location,
            )
        )

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_cached_feed(session: Session) -> Optional[CachedFeed]:
    """Read the cached feed, or ``None`` when nothing has been stored."""
    cache = session.execute(select(CacheModel)).scalar_one_or_none()
    if cache is None:
        return None

    rows = session.execute(
        select(CacheItemModel).order_by(CacheItemModel.position)
    ).scalars()
    feed: List[LocalFeedItem] = [
        LocalFeedItem(
            id=UUID(row.item_id),
            url=row.url,
            description=row.description,
            location=row.location,
        )
        for row in rows
    ]
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return CachedFeed(feed=feed, timestamp=as_utc(cache.timestamp))


class SqlAlchemyFeedStore:
    """Feed store persisting the cache through SQLAlchemy.

    Each operation opens its own session on a single worker thread, so
    operations are applied in the order they were issued.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        executor: Optional[concurrent.futures.Executor] = None,
        engine: Optional[Engine] = None,
    ):
        """``engine``, when given, is owned by the store and disposed on close."""
        self._session_factory = session_factory
        self.engine = engine
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="feed-db"
        )

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "SqlAlchemyFeedStore":
        engine = init_engine(connection_string)
        if engine is None:
            raise ValueError("A database connection string is required.")
        return cls(get_session_factory(engine), engine=engine)

    def delete_cached_feed(self) -> concurrent.futures.Future:
        return self._executor.submit(self._run, delete_cached_feed)

    def insert(
        self, feed: Sequence[LocalFeedItem], timestamp: datetime
    ) -> concurrent.futures.Future:
        return self._executor.submit(self._run, insert_feed, list(feed), timestamp)

    def retrieve(self) -> concurrent.futures.Future:
        return self._executor.submit(self._run, get_cached_feed)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self.engine is not None:
            self.engine.dispose()

    def __enter__(self) -> "SqlAlchemyFeedStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run(self, operation, *args):
        with self._session_factory() as session:
            try:
                return operation(session, *args)
            except Exception:
                logger.exception("Feed store operation %s failed", operation.__name__)
                raise
