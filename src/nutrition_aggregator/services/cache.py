"""TTL cache for normalized food items."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from nutrition_aggregator.domain.nutrition import CacheStats, FoodItem
from nutrition_aggregator.domain.storage import CacheCounters, CacheEntry
from nutrition_aggregator.services.storage import KVStore

_ENTRY_PREFIX = "cache:"
_STATS_KEY = "cache-stats"

_entry_adapter = TypeAdapter(CacheEntry)
_counters_adapter = TypeAdapter(CacheCounters)

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class CacheStore(Protocol):
    """Cache interface for normalized food items."""

    def get(self, key: str) -> FoodItem | None:
        """Return a cached item if present and not expired."""

    def set(self, key: str, value: FoodItem, ttl_seconds: int | None = None) -> None:
        """Store an item with a TTL in seconds."""

    def has(self, key: str) -> bool:
        """Return True if a live entry exists for the key."""

    def clear(self) -> None:
        """Remove every entry and reset the counters."""

    def stats(self) -> CacheStats:
        """Return size and hit/miss counters."""


@dataclass
class KVCacheStore(CacheStore):
    """Cache persisted through a key-value store.

    Expiry is lazy: an expired entry stays stored until it is read, evicted
    or purged by ``cleanup_expired``. When the entry count exceeds
    ``max_entries`` the oldest entries by creation time are removed.
    Hit and miss counters are cumulative and persisted alongside the entries.
    """

    store: KVStore
    default_ttl_seconds: int = 86400
    max_entries: int = 1000
    clock: Callable[[], datetime] = _utcnow

    def __post_init__(self) -> None:
        self._lock = threading.RLock()
        self._counters = self._load_counters()
        self._index: dict[str, datetime] = {}
        for storage_key in self.store.keys(_ENTRY_PREFIX):
            key = storage_key.removeprefix(_ENTRY_PREFIX)
            entry = self._read_entry(key)
            if entry is not None:
                self._index[key] = entry.created_at

    def get(self, key: str) -> FoodItem | None:
        """Return a cached item if it hasn't expired."""
        with self._lock:
            entry = self._read_entry(key)
            if entry is not None and entry.is_expired(self.clock()):
                self._remove(key)
                entry = None
            if entry is None:
                self._counters = CacheCounters(
                    hits=self._counters.hits, misses=self._counters.misses + 1
                )
                self._save_counters()
                return None
            self._counters = CacheCounters(
                hits=self._counters.hits + 1, misses=self._counters.misses
            )
            self._save_counters()
            return entry.data

    def set(self, key: str, value: FoodItem, ttl_seconds: int | None = None) -> None:
        """Store an item with a TTL, evicting the oldest entries if needed."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        created_at = self.clock()
        entry = CacheEntry(
            key=key,
            data=value,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl),
        )
        with self._lock:
            self.store.set(
                _ENTRY_PREFIX + key, _entry_adapter.dump_json(entry).decode()
            )
            self._index[key] = created_at
            self._enforce_size_limit()

    def has(self, key: str) -> bool:
        """Return True if a live entry exists. Counters are not touched."""
        with self._lock:
            entry = self._read_entry(key)
            return entry is not None and not entry.is_expired(self.clock())

    def clear(self) -> None:
        """Remove every entry and reset the counters."""
        with self._lock:
            for storage_key in self.store.keys(_ENTRY_PREFIX):
                self.store.delete(storage_key)
            self._index.clear()
            self._counters = CacheCounters()
            self._save_counters()
        _logger.info("Nutrition cache cleared")

    def stats(self) -> CacheStats:
        """Return size, counters and the hit rate as a fraction."""
        with self._lock:
            hits = self._counters.hits
            misses = self._counters.misses
            total = hits + misses
            return CacheStats(
                size=len(self._index),
                hits=hits,
                misses=misses,
                hit_rate=hits / total if total else 0.0,
            )

    def cleanup_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self.clock()
        removed = 0
        with self._lock:
            for key in list(self._index):
                entry = self._read_entry(key)
                if entry is None:
                    removed += 1
                elif entry.is_expired(now):
                    self._remove(key)
                    removed += 1
        if removed:
            _logger.info("Cleaned up %s expired cache entries", removed)
        return removed

    def _read_entry(self, key: str) -> CacheEntry | None:
        raw = self.store.get(_ENTRY_PREFIX + key)
        if raw is None:
            self._index.pop(key, None)
            return None
        try:
            return _entry_adapter.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            _logger.warning("Discarding corrupt cache entry %s: %s", key, exc)
            self._remove(key)
            return None

    def _remove(self, key: str) -> None:
        self.store.delete(_ENTRY_PREFIX + key)
        self._index.pop(key, None)

    def _enforce_size_limit(self) -> None:
        excess = len(self._index) - self.max_entries
        if excess <= 0:
            return
        oldest = sorted(self._index, key=self._index.__getitem__)[:excess]
        for key in oldest:
            self._remove(key)
        _logger.info("Evicted %s cache entries to stay within size limit", excess)

    def _load_counters(self) -> CacheCounters:
        raw = self.store.get(_STATS_KEY)
        if raw is None:
            return CacheCounters()
        try:
            return _counters_adapter.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            _logger.warning("Resetting corrupt cache counters: %s", exc)
            self.store.delete(_STATS_KEY)
            return CacheCounters()

    def _save_counters(self) -> None:
        self.store.set(_STATS_KEY, _counters_adapter.dump_json(self._counters).decode())
