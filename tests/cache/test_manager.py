"""Tests for the bounded TTL cache."""

from __future__ import annotations

import json
import threading

import numpy as np
import pytest

from codeweave.cache.manager import CacheManager, estimate_size
from codeweave.config.models import CacheConfig
from codeweave.core.errors import CacheError, ErrorCode


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheManager:
    return CacheManager(max_size=10_000, max_entries=100, default_ttl=60.0, clock=clock)


class TestEstimateSize:
    def test_array_uses_buffer_size(self) -> None:
        assert estimate_size(np.zeros(8, dtype=np.float32)) == 32

    def test_json_values_two_bytes_per_char(self) -> None:
        assert estimate_size("abcd") == len('"abcd"') * 2


class TestBasicOperations:
    def test_set_get(self, cache: CacheManager) -> None:
        assert cache.set("k", "v")
        assert cache.get("k") == "v"
        assert "k" in cache
        assert len(cache) == 1

    def test_miss_returns_default(self, cache: CacheManager) -> None:
        assert cache.get("missing") is None
        assert cache.get("missing", "fallback") == "fallback"

    def test_overwrite_replaces_size(self, cache: CacheManager) -> None:
        cache.set("k", "a" * 100)
        cache.set("k", "b")
        assert cache.get("k") == "b"
        assert cache.stats().total_size == estimate_size("b")
        assert len(cache) == 1

    def test_delete_and_clear(self, cache: CacheManager) -> None:
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert len(cache) == 0
        assert cache.stats().total_size == 0

    @pytest.mark.parametrize(
        ("field", "kwargs"),
        [("max_size", {"max_size": 0}), ("max_entries", {"max_entries": -1})],
    )
    def test_invalid_capacity(self, field: str, kwargs: dict[str, int]) -> None:
        with pytest.raises(CacheError) as exc_info:
            CacheManager(**kwargs)
        assert exc_info.value.code == ErrorCode.CACHE_INVALID_CAPACITY
        assert exc_info.value.details["field"] == field

    def test_from_config(self) -> None:
        cache = CacheManager.from_config(CacheConfig(max_entries=7))
        assert cache.max_entries == 7


class TestExpiry:
    def test_entry_expires_after_ttl(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("k", "v", ttl=10)
        clock.advance(10)
        assert cache.get("k") == "v"
        clock.advance(0.5)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_default_ttl(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("k", "v")
        clock.advance(61)
        assert not cache.has("k")

    def test_no_ttl_never_expires(self, clock: FakeClock) -> None:
        cache = CacheManager(default_ttl=None, clock=clock)
        cache.set("k", "v")
        clock.advance(10**9)
        assert cache.get("k") == "v"

    def test_sweep(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(5)
        assert cache.sweep() == 1
        assert cache.keys() == ["long"]


class TestEviction:
    def test_entry_limit_evicts_least_recently_used(self, clock: FakeClock) -> None:
        cache = CacheManager(max_entries=2, clock=clock)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.get("a")
        clock.advance(1)
        cache.set("c", 3)

        assert set(cache.keys()) == {"a", "c"}
        assert cache.stats().evictions == 1

    def test_lru_tie_goes_to_insertion_order(self, clock: FakeClock) -> None:
        cache = CacheManager(max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert set(cache.keys()) == {"b", "c"}

    def test_size_limit(self, clock: FakeClock) -> None:
        value = np.zeros(25, dtype=np.float32)  # 100 bytes
        cache = CacheManager(max_size=250, clock=clock)
        for i in range(3):
            cache.set(f"k{i}", value)
            clock.advance(1)

        assert cache.keys() == ["k1", "k2"]
        assert cache.stats().total_size <= 250

    def test_oversize_value_rejected(self, cache: CacheManager) -> None:
        cache.set("keep", "x")
        assert cache.set("huge", "y" * 10_000) is False
        assert cache.keys() == ["keep"]

    def test_concurrent_sets_respect_limits(self) -> None:
        cache: CacheManager = CacheManager(max_size=4000, max_entries=50)
        value = np.zeros(25, dtype=np.float32)

        def _writer(prefix: str) -> None:
            for i in range(200):
                cache.set(f"{prefix}{i}", value)

        threads = [threading.Thread(target=_writer, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = cache.stats()
        assert stats.total_entries <= 40
        assert stats.total_size <= 4000


class TestOptimize:
    def test_noop_below_threshold(self, cache: CacheManager) -> None:
        cache.set("a", 1)
        assert cache.optimize() == 0

    def test_drops_least_useful_tenth(self, clock: FakeClock) -> None:
        value = np.zeros(25, dtype=np.float32)
        cache = CacheManager(max_size=1000, clock=clock)
        for i in range(10):
            cache.set(f"k{i}", value)
        clock.advance(5)
        for i in range(1, 10):
            cache.get(f"k{i}")

        assert cache.optimize() == 1
        assert "k0" not in cache.keys()


class TestReporting:
    def test_stats_hit_rate(self, cache: CacheManager) -> None:
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("missing")

        stats = cache.stats()
        assert (stats.hits, stats.misses) == (2, 1)
        assert stats.hit_rate == pytest.approx(2 / 3)

    def test_empty_stats(self, cache: CacheManager) -> None:
        assert cache.stats().hit_rate == 0.0
        report = cache.efficiency_report()
        assert report["average_access_count"] == 0.0
        assert report["eviction_rate"] == 0.0

    def test_most_accessed(self, cache: CacheManager) -> None:
        cache.set("a", 1)
        cache.set("b", 2)
        for _ in range(3):
            cache.get("b")
        assert cache.most_accessed(1) == [("b", 4)]

    def test_efficiency_report(self, cache: CacheManager) -> None:
        cache.set("a", "v")
        cache.get("a")
        report = cache.efficiency_report()
        assert report["hit_rate"] == 1.0
        assert report["average_access_count"] == 2.0
        assert report["memory_efficiency"] == pytest.approx(estimate_size("v") / 10_000)


class TestExportImport:
    def test_round_trip(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("a", {"x": 1})
        cache.set("b", [1, 2, 3])
        blob = cache.export()

        other = CacheManager(clock=clock)
        assert other.import_(blob) == 2
        assert other.get("a") == {"x": 1}
        assert other.get("b") == [1, 2, 3]

    def test_export_shape(self, cache: CacheManager) -> None:
        cache.set("a", 1)
        payload = json.loads(cache.export())
        assert payload["version"] == 1
        assert payload["entries"][0]["key"] == "a"
        assert set(payload["stats"]) >= {"hits", "misses", "hit_rate", "total_entries", "total_size", "evictions"}

    def test_arrays_export_as_lists(self, cache: CacheManager) -> None:
        cache.set("v", np.asarray([0.5, 1.5], dtype=np.float32))
        payload = json.loads(cache.export())
        assert payload["entries"][0]["value"] == [0.5, 1.5]

    def test_import_drops_expired(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=500)
        blob = cache.export()

        clock.advance(10)
        other = CacheManager(clock=clock)
        assert other.import_(blob) == 1
        assert other.keys() == ["long"]

    def test_import_replaces_contents(self, cache: CacheManager, clock: FakeClock) -> None:
        other = CacheManager(clock=clock)
        other.set("old", 1)
        other.import_(cache.export())
        assert other.keys() == []

    def test_import_duplicate_key_keeps_last(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("k", "first")
        payload = json.loads(cache.export())
        entry = payload["entries"][0]
        payload["entries"] = [{**entry, "size": 400}, {**entry, "value": "second", "size": 100}]

        other = CacheManager(clock=clock)
        assert other.import_(json.dumps(payload)) == 1
        assert other.get("k") == "second"
        assert other.stats().total_size == 100

    @pytest.mark.parametrize("blob", ["not json", "{}", '{"entries": [{"value": 1}]}'])
    def test_bad_import(self, cache: CacheManager, blob: str) -> None:
        with pytest.raises(CacheError) as exc_info:
            cache.import_(blob)
        assert exc_info.value.code == ErrorCode.CACHE_IMPORT_FAILED


class TestSweeper:
    def test_start_and_close(self) -> None:
        with CacheManager(sweep_interval=0.01) as cache:
            cache.set("k", 1, ttl=0)
            cache.start_sweeper()
            cache.start_sweeper()
        assert not cache.sweeper_running
