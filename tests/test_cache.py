"""Tests for the key-value backed cache."""

import pytest

from nutrition_aggregator.services.cache import KVCacheStore
from nutrition_aggregator.services.storage import InMemoryKVStore
from tests.conftest import FakeClock, make_item


def test_set_then_get_counts_hit(store: InMemoryKVStore) -> None:
    cache = KVCacheStore(store=store, clock=FakeClock())
    item = make_item("Apple", sodium=1.0)

    cache.set("barcode:1", item)

    cached = cache.get("barcode:1")
    assert cached == item
    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 1, 0)
    assert stats.hit_rate == 1.0


def test_entry_expires_strictly_after_ttl(store: InMemoryKVStore) -> None:
    clock = FakeClock()
    cache = KVCacheStore(store=store, clock=clock)
    cache.set("k", make_item(), ttl_seconds=60)

    clock.advance(60)
    assert cache.get("k") is not None

    clock.advance(1)
    assert cache.get("k") is None
    assert store.get("cache:k") is None
    assert cache.stats().misses == 1
    assert cache.stats().size == 0


def test_eviction_removes_oldest_entry(store: InMemoryKVStore) -> None:
    clock = FakeClock()
    cache = KVCacheStore(store=store, max_entries=3, clock=clock)

    for index in range(4):
        cache.set(f"k{index}", make_item(f"Item {index}"))
        clock.advance(1)

    assert cache.stats().size == 3
    assert not cache.has("k0")
    assert all(cache.has(f"k{index}") for index in range(1, 4))


def test_corrupt_entry_is_discarded_as_miss(store: InMemoryKVStore) -> None:
    cache = KVCacheStore(store=store, clock=FakeClock())
    store.set("cache:broken", "{not json")

    assert cache.get("broken") is None
    assert store.get("cache:broken") is None
    assert cache.stats().misses == 1


def test_has_does_not_touch_counters(store: InMemoryKVStore) -> None:
    cache = KVCacheStore(store=store, clock=FakeClock())
    cache.set("k", make_item())

    assert cache.has("k")
    assert not cache.has("missing")

    stats = cache.stats()
    assert (stats.hits, stats.misses) == (0, 0)
    assert stats.hit_rate == 0.0


def test_clear_removes_entries_and_counters(store: InMemoryKVStore) -> None:
    cache = KVCacheStore(store=store, clock=FakeClock())
    cache.set("k", make_item())
    cache.get("k")
    cache.get("missing")

    cache.clear()

    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (0, 0, 0)
    assert store.keys("cache:") == []


def test_entries_and_counters_survive_restart(store: InMemoryKVStore) -> None:
    clock = FakeClock()
    first = KVCacheStore(store=store, clock=clock)
    first.set("k", make_item("Banana", fiber=2.6))
    first.get("k")
    first.get("nope")

    second = KVCacheStore(store=store, clock=clock)

    stats = second.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 1, 1)
    assert stats.hit_rate == pytest.approx(0.5)
    restored = second.get("k")
    assert restored is not None
    assert restored.name == "Banana"
    assert restored.fiber == 2.6


def test_cleanup_expired_removes_only_expired(store: InMemoryKVStore) -> None:
    clock = FakeClock()
    cache = KVCacheStore(store=store, clock=clock)
    cache.set("short", make_item("Short"), ttl_seconds=10)
    cache.set("long", make_item("Long"), ttl_seconds=1000)

    clock.advance(11)

    assert cache.cleanup_expired() == 1
    assert cache.stats().size == 1
    assert cache.has("long")


def test_non_positive_ttl_is_rejected(store: InMemoryKVStore) -> None:
    cache = KVCacheStore(store=store)

    with pytest.raises(ValueError):
        cache.set("k", make_item(), ttl_seconds=0)
