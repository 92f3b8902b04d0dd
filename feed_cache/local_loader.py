"""Cache orchestration on top of an asynchronous feed store."""

from __future__ import annotations

import concurrent.futures
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Sequence

from .mapping import to_local, to_models
from .models import FeedItem
from .policy import FeedCachePolicy
from .store import FeedStore

logger = logging.getLogger(__name__)

SaveCompletion = Callable[[Optional[BaseException]], None]


@dataclass(frozen=True)
class LoadFeedResult:
    """Outcome of a feed load: either a feed or an error."""

    feed: Optional[List[FeedItem]] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, feed: Sequence[FeedItem]) -> "LoadFeedResult":
        return cls(feed=list(feed))

    @classmethod
    def failure(cls, error: BaseException) -> "LoadFeedResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


LoadCompletion = Callable[[LoadFeedResult], None]


class FeedLoader(Protocol):
    """Anything able to produce a feed asynchronously."""

    def load(self, completion: LoadCompletion) -> None:
        """Deliver a :class:`LoadFeedResult` to ``completion`` exactly once."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def future_error(future: concurrent.futures.Future) -> Optional[BaseException]:
    """Return the failure a completed future carries, if any."""
    if future.cancelled():
        return concurrent.futures.CancelledError()
    return future.exception()


class LocalFeedLoader:
    """Save feeds into a store and load them back while they are fresh.

    The loader keeps no state besides the store and the clock. Store
    completions only hold a weak reference to the loader: once the loader is
    released, late completions are dropped and callbacks are never invoked.
    """

    def __init__(
        self,
        store: FeedStore,
        current_date: Callable[[], datetime] = utc_now,
        policy: Optional[FeedCachePolicy] = None,
    ):
        self._store = store
        self._current_date = current_date
        self._policy = policy or FeedCachePolicy()

    def save(self, feed: Sequence[FeedItem], completion: SaveCompletion) -> None:
        """Replace the cached feed with ``feed``.

        The store is asked to delete its content first; the new feed is only
        inserted after the deletion succeeded. ``completion`` receives ``None``
        on success or the store error.
        """
        feed = list(feed)
        loader_ref = weakref.ref(self)

        def on_deletion(future: concurrent.futures.Future) -> None:
            loader = loader_ref()
            if loader is None:
                logger.debug("Loader released before cache deletion completed")
                return

            error = future_error(future)
            if error is not None:
                logger.debug("Cache deletion failed: %s", error)
                completion(error)
                return

            loader._cache(feed, completion)

        logger.debug("Saving %d feed items", len(feed))
        self._store.delete_cached_feed().add_done_callback(on_deletion)

    def _cache(self, feed: List[FeedItem], completion: SaveCompletion) -> None:
        loader_ref = weakref.ref(self)

        def on_insertion(future: concurrent.futures.Future) -> None:
            if loader_ref() is None:
                logger.debug("Loader released before cache insertion completed")
                return
            completion(future_error(future))

        try:
            timestamp = self._current_date()
            future = self._store.insert(to_local(feed), timestamp)
        except Exception as exc:
            logger.exception("Failed to issue cache insertion")
            completion(exc)
            return

        future.add_done_callback(on_insertion)

    def load(self, completion: LoadCompletion) -> None:
        """Load the cached feed.

        An empty or expired cache yields an empty feed, never an error. Only a
        failing store produces a failure result. The store is never modified.
        """
        loader_ref = weakref.ref(self)

        def on_retrieval(future: concurrent.futures.Future) -> None:
            loader = loader_ref()
            if loader is None:
                logger.debug("Loader released before cache retrieval completed")
                return

            error = future_error(future)
            if error is not None:
                completion(LoadFeedResult.failure(error))
                return

            cached = future.result()
            if cached is None:
                logger.debug("Feed cache is empty")
                completion(LoadFeedResult.success([]))
            elif loader._policy.validate(cached.timestamp, loader._current_date()):
                completion(LoadFeedResult.success(to_models(cached.feed)))
            else:
                logger.debug("Feed cache written at %s has expired", cached.timestamp)
                completion(LoadFeedResult.success([]))

        self._store.retrieve().add_done_callback(on_retrieval)
