"""Conversions between domain feed items and their stored form."""

from __future__ import annotations

from typing import Iterable, List

from .models import FeedItem, LocalFeedItem


def to_local(feed: Iterable[FeedItem]) -> List[LocalFeedItem]:
    return [
        LocalFeedItem(
            id=item.id,
            url=item.url,
            description=item.description,
            location=item.location,
        )
        for item in feed
    ]


def to_models(local_feed: Iterable[LocalFeedItem]) -> List[FeedItem]:
    return [
        FeedItem(
            id=item.id,
            url=item.url,
            description=item.description,
            location=item.location,
        )
        for item in local_feed
    ]
