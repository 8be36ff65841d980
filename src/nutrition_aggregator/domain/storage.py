"""Persisted record shapes for the cache and quota tracker."""

from dataclasses import dataclass
from datetime import datetime

from nutrition_aggregator.domain.nutrition import FoodItem


@dataclass(frozen=True)
class CacheEntry:
    """A cached food item with its lifetime."""

    key: str
    data: FoodItem
    created_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` is strictly past the expiry time."""
        return now > self.expires_at


@dataclass(frozen=True)
class CacheCounters:
    """Cumulative cache hit and miss counters."""

    hits: int = 0
    misses: int = 0


@dataclass
class QuotaRecord:
    """Per-provider call counters. ``quota=None`` means unlimited."""

    calls_today: int = 0
    calls_this_month: int = 0
    last_reset_date: str = ""
    quota: int | None = None
