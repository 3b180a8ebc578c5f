"""Bounded in-memory key/value cache with TTL expiry and eviction.

Design:
- One ``threading.RLock`` guards the whole table. Every read-modify-write
  (TTL check then access update, capacity check then insert, sweep,
  optimize) runs as a single critical section, so concurrent ``set``
  calls can never jointly overshoot ``max_size`` or ``max_entries``.
- Reactive eviction on ``set`` is pure LRU (oldest ``last_accessed``).
- Proactive ``optimize()`` scores entries by
  ``access_count * 1000 / (age + recency + 1)`` (milliseconds) and drops
  the lowest 10% once the table is above 80% of ``max_size``.
- Expired entries are removed lazily on access and by ``sweep()``, which
  an optional background thread calls on a fixed interval.

Timestamps come from an injectable clock (seconds, ``time.time`` by
default) so tests can advance time without sleeping.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import numpy as np
import structlog

from codeweave.core.errors import CacheError

log = structlog.get_logger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]

# Size charged for values that cannot be serialized for estimation
_FALLBACK_SIZE = 1024

# optimize() only acts above this fraction of max_size
_OPTIMIZE_UTILIZATION = 0.8
_OPTIMIZE_FRACTION = 0.1
_USEFULNESS_WEIGHT = 1000.0

EXPORT_VERSION = 1


def _json_default(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return str(value)


def estimate_size(value: Any) -> int:
    """Rough byte size of ``value``.

    numpy arrays report their buffer size. Everything else is charged two
    bytes per character of its JSON form.
    """
    if isinstance(value, np.ndarray):
        return int(value.nbytes)
    try:
        return len(json.dumps(value, default=_json_default)) * 2
    except (TypeError, ValueError):
        return _FALLBACK_SIZE


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """One cached value plus the bookkeeping eviction needs."""

    key: str
    value: V
    created_at: float
    last_accessed: float
    size: int
    ttl: float | None = None
    access_count: int = 1

    def is_expired(self, now: float) -> bool:
        return self.ttl is not None and now - self.created_at > self.ttl

    def usefulness(self, now: float) -> float:
        age_ms = (now - self.created_at) * 1000.0
        recency_ms = (now - self.last_accessed) * 1000.0
        return (self.access_count * _USEFULNESS_WEIGHT) / (age_ms + recency_ms + 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "created_at": self.created_at,
            "last_accessed": self.last_accessed,
            "size": self.size,
            "ttl": self.ttl,
            "access_count": self.access_count,
        }


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    hit_rate: float
    total_entries: int
    total_size: int
    evictions: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "total_entries": self.total_entries,
            "total_size": self.total_size,
            "evictions": self.evictions,
        }


class CacheManager(Generic[V]):
    """Thread-safe bounded cache.

    Args:
        max_size: Total estimated bytes the cache may hold.
        max_entries: Maximum number of entries.
        default_ttl: TTL in seconds applied when ``set`` gets none.
            ``None`` disables expiry for such entries.
        sweep_interval: Seconds between background sweeps once
            ``start_sweeper()`` is called.
        clock: Time source in seconds.

    Raises:
        CacheError: ``max_size`` or ``max_entries`` is not positive.
    """

    def __init__(
        self,
        max_size: int = 100 * 1024 * 1024,
        max_entries: int = 10_000,
        default_ttl: float | None = 24 * 60 * 60,
        *,
        sweep_interval: float = 60.0,
        clock: Clock = time.time,
    ) -> None:
        if max_size <= 0:
            raise CacheError.invalid_capacity("max_size", max_size)
        if max_entries <= 0:
            raise CacheError.invalid_capacity("max_entries", max_entries)

        self._max_size = max_size
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock

        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry[V]] = {}
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    @classmethod
    def from_config(cls, config: Any, *, clock: Clock = time.time) -> CacheManager[V]:
        """Build from a ``CacheConfig`` section."""
        return cls(
            max_size=config.max_size_bytes,
            max_entries=config.max_entries,
            default_ttl=config.default_ttl_sec,
            sweep_interval=config.sweep_interval_sec,
            clock=clock,
        )

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def max_entries(self) -> int:
        return self._max_entries

    # =========================================================================
    # Core operations
    # =========================================================================

    def get(self, key: str, default: V | None = None) -> V | None:
        """Return the value for ``key`` or ``default`` on a miss."""
        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is None:
                self._misses += 1
                return default
            if entry.is_expired(now):
                self._remove(key)
                self._misses += 1
                return default
            entry.access_count += 1
            entry.last_accessed = now
            self._hits += 1
            return entry.value

    def set(self, key: str, value: V, ttl: float | None = None) -> bool:
        """Insert or overwrite ``key``.

        Evicts least-recently-used entries until the new value fits both
        limits. Returns False, leaving the cache untouched, when the value
        alone is larger than ``max_size``.
        """
        size = estimate_size(value)
        if size > self._max_size:
            log.debug("cache.rejected_oversize", key=key, size=size, max_size=self._max_size)
            return False

        with self._lock:
            now = self._clock()
            if key in self._entries:
                self._remove(key)

            while self._entries and self._total_size + size > self._max_size:
                self._evict_lru()
            while len(self._entries) >= self._max_entries:
                self._evict_lru()

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                last_accessed=now,
                size=size,
                ttl=ttl if ttl is not None else self._default_ttl,
            )
            self._total_size += size
            return True

    def has(self, key: str) -> bool:
        """True if ``key`` is present and not expired. Does not count as access."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                self._remove(key)
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._total_size = 0
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # =========================================================================
    # Eviction and maintenance
    # =========================================================================

    def _remove(self, key: str) -> CacheEntry[V]:
        entry = self._entries.pop(key)
        self._total_size -= entry.size
        return entry

    def _evict_lru(self) -> None:
        oldest = min(self._entries.values(), key=lambda e: e.last_accessed)
        self._remove(oldest.key)
        self._evictions += 1
        log.debug("cache.evicted", key=oldest.key, size=oldest.size, policy="lru")

    def sweep(self, timeout: float | None = None) -> int:
        """Remove all expired entries. Returns the number removed.

        With ``timeout``, gives up (returning 0) if the table lock cannot
        be taken in time.
        """
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            log.warning("cache.sweep_timeout", timeout=timeout)
            return 0
        try:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._remove(key)
        finally:
            self._lock.release()
        if expired:
            log.debug("cache.swept", removed=len(expired))
        return len(expired)

    def optimize(self) -> int:
        """Drop the least useful 10% of entries when above 80% of ``max_size``.

        Returns the number of entries removed.
        """
        with self._lock:
            if self._total_size / self._max_size <= _OPTIMIZE_UTILIZATION:
                return 0
            now = self._clock()
            ranked = sorted(self._entries.values(), key=lambda e: e.usefulness(now))
            doomed = ranked[: int(len(ranked) * _OPTIMIZE_FRACTION)]
            for entry in doomed:
                self._remove(entry.key)
                self._evictions += 1
        if doomed:
            log.info("cache.optimized", removed=len(doomed))
        return len(doomed)

    @property
    def sweeper_running(self) -> bool:
        sweeper = self._sweeper
        return sweeper is not None and sweeper.is_alive()

    def start_sweeper(self) -> None:
        """Start the background sweep thread. Idempotent."""
        with self._lock:
            if self._sweeper is not None and self._sweeper.is_alive():
                return
            self._stop.clear()
            self._sweeper = threading.Thread(target=self._sweep_loop, name="codeweave-cache-sweeper", daemon=True)
            self._sweeper.start()

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            self.sweep(timeout=self._sweep_interval)

    def close(self, timeout: float | None = 5.0) -> None:
        """Stop the background sweeper, if running."""
        self._stop.set()
        sweeper = self._sweeper
        if sweeper is not None:
            sweeper.join(timeout=timeout)
            self._sweeper = None

    def __enter__(self) -> CacheManager[V]:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # =========================================================================
    # Reporting
    # =========================================================================

    def _hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hit_rate(),
                total_entries=len(self._entries),
                total_size=self._total_size,
                evictions=self._evictions,
            )

    def most_accessed(self, limit: int = 10) -> list[tuple[str, int]]:
        with self._lock:
            ranked = sorted(self._entries.values(), key=lambda e: -e.access_count)
            return [(e.key, e.access_count) for e in ranked[:limit]]

    def efficiency_report(self) -> dict[str, float]:
        with self._lock:
            count = len(self._entries)
            total_accesses = sum(e.access_count for e in self._entries.values())
            operations = self._hits + self._misses + self._evictions
            return {
                "hit_rate": self._hit_rate(),
                "average_access_count": total_accesses / count if count else 0.0,
                "memory_efficiency": self._total_size / self._max_size,
                "eviction_rate": self._evictions / operations if operations else 0.0,
            }

    # =========================================================================
    # Persistence
    # =========================================================================

    def export(self) -> str:
        """Serialize all live entries and statistics to a JSON string."""
        with self._lock:
            now = self._clock()
            payload = {
                "version": EXPORT_VERSION,
                "timestamp": now,
                "entries": [e.to_dict() for e in self._entries.values() if not e.is_expired(now)],
                "stats": self.stats().to_dict(),
            }
        return json.dumps(payload, default=_json_default)

    def import_(self, blob: str) -> int:
        """Replace the cache contents with a previous ``export()``.

        Entries whose TTL has elapsed since their stored creation time are
        dropped. Returns the number of entries restored.

        Raises:
            CacheError: ``blob`` is not a valid export.
        """
        try:
            payload = json.loads(blob)
            records = payload["entries"]
            restored = [
                CacheEntry(
                    key=str(r["key"]),
                    value=r["value"],
                    created_at=float(r["created_at"]),
                    last_accessed=float(r.get("last_accessed", r["created_at"])),
                    size=int(r.get("size", _FALLBACK_SIZE)),
                    ttl=None if r.get("ttl") is None else float(r["ttl"]),
                    access_count=int(r.get("access_count", 1)),
                )
                for r in records
            ]
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise CacheError.import_failed(str(exc)) from exc

        with self._lock:
            now = self._clock()
            self._entries.clear()
            self._total_size = 0
            for entry in restored:
                if entry.is_expired(now):
                    continue
                if entry.size > self._max_size:
                    continue
                if entry.key in self._entries:
                    self._remove(entry.key)
                while self._entries and self._total_size + entry.size > self._max_size:
                    self._evict_lru()
                while len(self._entries) >= self._max_entries:
                    self._evict_lru()
                self._entries[entry.key] = entry
                self._total_size += entry.size
            count = len(self._entries)
        log.info("cache.imported", entries=count, offered=len(restored))
        return count
