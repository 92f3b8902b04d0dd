"""Feed store contract and an in-memory implementation."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from .models import CachedFeed, LocalFeedItem

logger = logging.getLogger(__name__)


class FeedStore(Protocol):
    """Asynchronous persistence backend for a single cached feed.

    Every operation returns a future that resolves exactly once. A failed
    operation resolves with an exception. ``insert`` replaces the whole cache
    and ``retrieve`` resolves with ``None`` when nothing is cached.
    """

    def delete_cached_feed(self) -> concurrent.futures.Future:
        """Remove any cached feed."""

    def insert(
        self, feed: Sequence[LocalFeedItem], timestamp: datetime
    ) -> concurrent.futures.Future:
        """Store ``feed`` as the cached feed written at ``timestamp``."""

    def retrieve(self) -> concurrent.futures.Future:
        """Return the cached feed, or ``None`` for an empty cache."""


class InMemoryFeedStore:
    """Feed store keeping the cache in process memory.

    Operations run on a background worker, so completions never happen on
    the calling thread.
    """

    def __init__(self, executor: Optional[concurrent.futures.Executor] = None):
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="feed-store"
        )
        self._lock = threading.Lock()
        self._cache: Optional[CachedFeed] = None

    def delete_cached_feed(self) -> concurrent.futures.Future:
        return self._executor.submit(self._delete)

    def insert(
        self, feed: Sequence[LocalFeedItem], timestamp: datetime
    ) -> concurrent.futures.Future:
        return self._executor.submit(self._insert, list(feed), timestamp)

    def retrieve(self) -> concurrent.futures.Future:
        return self._executor.submit(self._retrieve)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "InMemoryFeedStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _delete(self) -> None:
        with self._lock:
            self._cache = None
        logger.debug("Deleted in-memory feed cache")

    def _insert(self, feed: List[LocalFeedItem], timestamp: datetime) -> None:
        with self._lock:
            self._cache = CachedFeed(feed=feed, timestamp=timestamp)
        logger.debug("Cached %d feed items at %s", len(feed), timestamp)

    def _retrieve(self) -> Optional[CachedFeed]:
        with self._lock:
            cached = self._cache
        if cached is None:
            logger.debug("In-memory feed cache is empty")
            return None
        return CachedFeed(feed=list(cached.feed), timestamp=cached.timestamp)
