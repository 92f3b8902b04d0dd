import concurrent.futures
import uuid
from datetime import datetime, timezone

import pytest

from feed_cache.mapping import to_local
from feed_cache.models import CachedFeed, FeedItem


class FeedStoreSpy:
    """Feed store double recording messages and completing them on demand."""

    def __init__(self):
        self.received_messages = []
        self._deletions = []
        self._insertions = []
        self._retrievals = []

    def delete_cached_feed(self):
        future = concurrent.futures.Future()
        self._deletions.append(future)
        self.received_messages.append(("delete_cached_feed",))
        return future

    def complete_deletion(self, error, index=0):
        self._deletions[index].set_exception(error)

    def complete_deletion_successfully(self, index=0):
        self._deletions[index].set_result(None)

    def insert(self, feed, timestamp):
        future = concurrent.futures.Future()
        self._insertions.append(future)
        self.received_messages.append(("insert", list(feed), timestamp))
        return future

    def complete_insertion(self, error, index=0):
        self._insertions[index].set_exception(error)

    def complete_insertion_successfully(self, index=0):
        self._insertions[index].set_result(None)

    def retrieve(self):
        future = concurrent.futures.Future()
        self._retrievals.append(future)
        self.received_messages.append(("retrieve",))
        return future

    def complete_retrieval(self, error, index=0):
        self._retrievals[index].set_exception(error)

    def complete_retrieval_with_empty_cache(self, index=0):
        self._retrievals[index].set_result(None)

    def complete_retrieval_with_feed(self, local_feed, timestamp, index=0):
        self._retrievals[index].set_result(
            CachedFeed(feed=list(local_feed), timestamp=timestamp)
        )


@pytest.fixture
def store():
    return FeedStoreSpy()


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 9, 12, 30, tzinfo=timezone.utc)


def unique_item() -> FeedItem:
    return FeedItem(
        id=uuid.uuid4(),
        url="https://any-url.com",
        description="any",
        location="any",
    )


@pytest.fixture
def unique_feed():
    """Return a factory producing (models, local) pairs of two unique items."""

    def make():
        feed = [unique_item(), unique_item()]
        return feed, to_local(feed)

    return make


@pytest.fixture
def any_error():
    return RuntimeError("any error")
