"""High-level orchestration for the feed_cache application."""

from __future__ import annotations

import concurrent.futures
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from . import db
from .local_loader import LoadFeedResult, LocalFeedLoader
from .models import FeedItem
from .policy import MAX_CACHE_AGE_DAYS, FeedCachePolicy
from .remote import RemoteFeedLoader, RequestsHTTPClient
from .store import InMemoryFeedStore

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_CACHE = "cache"


@dataclass
class RunConfig:
    """Runtime options for executing the application."""

    feed_url: Optional[str]
    timeout: float = 10.0
    max_age_days: int = MAX_CACHE_AGE_DAYS
    offline: bool = False
    output_path: Optional[str] = None
    database_enabled: bool = False
    database_connection_string: Optional[str] = None
    wait_timeout: Optional[float] = 60.0


@dataclass
class RunResult:
    """Returned data after executing the app."""

    output_text: str
    feed: List[FeedItem]
    source: str


def _wait(operation: Callable[[Callable], None], timeout: Optional[float]):
    """Run a callback-style operation and block until it completes."""
    future: concurrent.futures.Future = concurrent.futures.Future()
    operation(future.set_result)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as exc:
        raise RuntimeError("Timed out waiting for the feed operation.") from exc


def _build_store(config: RunConfig):
    if config.database_enabled:
        if not config.database_connection_string:
            logger.warning(
                "Database enabled but no connection string provided. Using in-memory cache."
            )
        else:
            return db.SqlAlchemyFeedStore.from_connection_string(
                config.database_connection_string
            )
    return InMemoryFeedStore()


def serialise_feed(feed: Sequence[FeedItem]) -> List[dict]:
    return [
        {
            "id": str(item.id),
            "description": item.description,
            "location": item.location,
            "image": item.url,
        }
        for item in feed
    ]


def _save_feed_to_file(path: str, payload: List[dict]) -> None:
    location = Path(path)
    if location.parent and not location.parent.exists():
        location.parent.mkdir(parents=True, exist_ok=True)

    location.write_text(
        json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    logger.info("Saved %d feed items to %s", len(payload), location)


def _load_remote_and_cache(
    config: RunConfig, local_loader: LocalFeedLoader
) -> Tuple[LoadFeedResult, str]:
    client = RequestsHTTPClient(timeout=config.timeout)
    try:
        remote_loader = RemoteFeedLoader(config.feed_url, client)
        result: LoadFeedResult = _wait(remote_loader.load, config.wait_timeout)
    finally:
        client.close()

    if not result.ok:
        logger.warning("Remote feed unavailable (%s); falling back to cache.", result.error)
        return _wait(local_loader.load, config.wait_timeout), SOURCE_CACHE

    try:
        save_error = _wait(
            lambda completion: local_loader.save(result.feed, completion),
            config.wait_timeout,
        )
    except RuntimeError as exc:
        save_error = exc
    if save_error is not None:
        logger.warning("Failed to cache fetched feed: %s", save_error)
    else:
        logger.info("Cached %d feed items", len(result.feed))
    return result, SOURCE_REMOTE


def execute(config: RunConfig) -> RunResult:
    """Run the application logic and return the result payload."""
    if not config.offline and not config.feed_url:
        raise ValueError("A feed URL is required unless running offline.")

    store = _build_store(config)
    try:
        local_loader = LocalFeedLoader(
            store, policy=FeedCachePolicy(max_age_days=config.max_age_days)
        )
        if config.offline:
            logger.info("Offline mode: loading feed from cache only")
            result, source = _wait(local_loader.load, config.wait_timeout), SOURCE_CACHE
        else:
            result, source = _load_remote_and_cache(config, local_loader)
    finally:
        store.close()

    if not result.ok:
        raise RuntimeError(f"Unable to load feed: {result.error}") from result.error

    logger.info("Loaded %d feed items from %s", len(result.feed), source)
    payload = serialise_feed(result.feed)
    if config.output_path:
        _save_feed_to_file(config.output_path, payload)

    return RunResult(
        output_text=json.dumps(payload, indent=2, ensure_ascii=False),
        feed=result.feed,
        source=source,
    )
