"""Freshness rules for cached feeds."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

MAX_CACHE_AGE_DAYS = 7


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class FeedCachePolicy:
    """Decide whether a cache written at a given time is still usable.

    Ages are measured in UTC calendar days. A cache is valid strictly before
    ``timestamp + max_age_days``; at that instant it has already expired.
    """

    max_age_days: int = MAX_CACHE_AGE_DAYS

    def __post_init__(self):
        if self.max_age_days <= 0:
            raise ValueError("max_age_days must be positive.")

    def expiry(self, timestamp: datetime) -> datetime:
        return as_utc(timestamp) + timedelta(days=self.max_age_days)

    def validate(self, timestamp: datetime, now: datetime) -> bool:
        return as_utc(now) < self.expiry(timestamp)
