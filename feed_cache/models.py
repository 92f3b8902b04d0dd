"""Shared data models for feed_cache."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID


@dataclass(frozen=True)
class FeedItem:
    """Feed item as seen by the rest of the application."""

    id: UUID
    url: str
    description: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class LocalFeedItem:
    """Feed item in the shape handed to a feed store."""

    id: UUID
    url: str
    description: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CachedFeed:
    """Feed snapshot returned by a store together with its write time."""

    feed: List[LocalFeedItem]
    timestamp: datetime
