"""Fetching the feed from its remote endpoint."""

from __future__ import annotations

import concurrent.futures
import json
import logging
import weakref
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol
from uuid import UUID

import requests

from .local_loader import LoadCompletion, LoadFeedResult, future_error
from .models import FeedItem

logger = logging.getLogger(__name__)

OK_STATUS = 200


class ConnectivityError(RuntimeError):
    """The remote endpoint could not be reached."""


class InvalidDataError(RuntimeError):
    """The remote endpoint answered with something that is not a feed."""


@dataclass
class HTTPResponse:
    status_code: int
    content: bytes
    url: str


class HTTPClient(Protocol):
    def get(self, url: str) -> concurrent.futures.Future:
        """Resolve with an :class:`HTTPResponse` or fail with the transport error."""


class RequestsHTTPClient:
    """HTTP client running ``requests`` GET calls on a thread pool."""

    def __init__(
        self,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="feed-http"
        )

    def get(self, url: str) -> concurrent.futures.Future:
        return self._executor.submit(self._get, url)

    def _get(self, url: str) -> HTTPResponse:
        logger.debug("GET %s", url)
        response = self._session.get(url, timeout=self.timeout)
        return HTTPResponse(
            status_code=response.status_code,
            content=response.content or b"",
            url=response.url or url,
        )

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self._session.close()


def parse_feed(response: HTTPResponse) -> List[FeedItem]:
    """Map a feed endpoint response to feed items."""
    if response.status_code != OK_STATUS:
        raise InvalidDataError(f"Unexpected status code {response.status_code}")

    try:
        payload: Any = json.loads(response.content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidDataError("Feed payload is not valid JSON") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise InvalidDataError("Feed payload must contain an 'items' array")

    feed: List[FeedItem] = []
    for raw in payload["items"]:
        if not isinstance(raw, dict):
            raise InvalidDataError("Feed items must be objects")
        try:
            item_id = UUID(str(raw["id"]))
            url = raw["image"]
        except (KeyError, ValueError) as exc:
            raise InvalidDataError(f"Malformed feed item: {raw!r}") from exc
        if not isinstance(url, str) or not url:
            raise InvalidDataError(f"Malformed feed item: {raw!r}")

        description = raw.get("description")
        location = raw.get("location")
        for value in (description, location):
            if value is not None and not isinstance(value, str):
                raise InvalidDataError(f"Malformed feed item: {raw!r}")

        feed.append(
            FeedItem(
                id=item_id,
                url=url,
                description=description,
                location=location,
            )
        )
    return feed


class RemoteFeedLoader:
    """Load the feed from ``url`` through an :class:`HTTPClient`."""

    def __init__(self, url: str, client: HTTPClient):
        self.url = url
        self._client = client

    def load(self, completion: LoadCompletion) -> None:
        loader_ref = weakref.ref(self)
        url = self.url

        def on_response(future: concurrent.futures.Future) -> None:
            if loader_ref() is None:
                logger.debug("Remote loader released before %s responded", url)
                return

            error = future_error(future)
            if error is not None:
                logger.warning("Failed to fetch feed from %s: %s", url, error)
                connectivity_error = ConnectivityError(str(error))
                connectivity_error.__cause__ = error
                completion(LoadFeedResult.failure(connectivity_error))
                return

            try:
                feed = parse_feed(future.result())
            except InvalidDataError as exc:
                logger.warning("Invalid feed received from %s: %s", url, exc)
                completion(LoadFeedResult.failure(exc))
                return

            logger.info("Fetched %d feed items from %s", len(feed), url)
            completion(LoadFeedResult.success(feed))

        logger.info("Fetching feed from %s", url)
        self._client.get(url).add_done_callback(on_response)
