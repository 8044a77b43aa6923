#!/usr/bin/env python3
"""
Memory Cache
============
Bounded, time-expiring key-value cache with least-recently-used eviction,
plus a registry holding one cache per computation kind.

Each ``MemoryCache`` serialises its operations with its own lock, so it can
be shared by concurrent generation requests. Two callers missing the same
key may both compute the value; the last write wins.

Usage:
    registry = CacheRegistry()
    cache = registry.get(CacheKind.SCORE)
    score = cache.get_or_set(score_key("李明", "李", None), lambda: scorer.score(...))
    print(registry.stats())
"""

from __future__ import annotations

import inspect
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from mingkit.settings import get_setting

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CacheEntry:
    """One cached value with its bookkeeping."""
    key: str
    value: Any
    inserted_at: float
    ttl: float
    last_accessed: float
    access_count: int = 0

    @property
    def expires_at(self) -> float:
        return self.inserted_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of a cache's counters."""
    name: str
    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    expirations: int

    @property
    def requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        return self.hits / self.requests if self.requests else 0.0

    @property
    def utilization(self) -> float:
        return self.size / self.max_size if self.max_size else 0.0

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'size': self.size,
            'max_size': self.max_size,
            'hits': self.hits,
            'misses': self.misses,
            'evictions': self.evictions,
            'expirations': self.expirations,
            'hit_rate': round(self.hit_rate, 4),
        }


class HealthStatus(Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class MemoryHealth:
    """Utilisation-based health of one cache."""
    name: str
    utilization: float
    status: HealthStatus
    recommendation: str

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'utilization': round(self.utilization, 4),
            'status': self.status.value,
            'recommendation': self.recommendation,
        }


# =============================================================================
# Memory Cache
# =============================================================================

class MemoryCache:
    """
    Thread-safe LRU cache with per-entry TTL.

    Parameters
    ----------
    max_size : int
        Maximum number of live entries; inserting a new key at capacity
        evicts the least-recently-used entry.
    default_ttl : float
        Seconds an entry stays valid when ``set`` is not given a ttl.
    name : str
        Label used in stats and logs.
    clock : callable
        Monotonic time source in seconds (injectable for tests).
    warning_threshold, critical_threshold : float, optional
        Utilisation bands for ``memory_health``; read from app.yaml when omitted.
    """

    def __init__(self,
                 max_size: int,
                 default_ttl: float,
                 name: str = "cache",
                 clock: Callable[[], float] = time.monotonic,
                 warning_threshold: Optional[float] = None,
                 critical_threshold: Optional[float] = None):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.max_size = int(max_size)
        self.default_ttl = float(default_ttl)
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

        health_cfg = get_setting("cache.health", {}) or {}
        if warning_threshold is None:
            warning_threshold = health_cfg.get("warning")
        if critical_threshold is None:
            critical_threshold = health_cfg.get("critical")
        if warning_threshold is None or critical_threshold is None:
            raise ValueError("cache.health.warning and cache.health.critical must be set in app.yaml")
        self.warning_threshold = float(warning_threshold)
        self.critical_threshold = float(critical_threshold)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def _live_entry(self, key: str, now: float) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, dropping it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._entries[key]
            self._expirations += 1
            return None
        return entry

    def _touch(self, entry: CacheEntry, now: float):
        entry.access_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(entry.key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss or expired entry."""
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            self._touch(entry, now)
            return entry.value

    def has(self, key: str) -> bool:
        """True if a live entry exists; refreshes its recency without counting a hit."""
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return False
            entry.last_accessed = now
            self._entries.move_to_end(key)
            return True

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Insert or overwrite ``key``; evicts the LRU entry when full."""
        ttl = self.default_ttl if ttl is None else float(ttl)
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            now = self._clock()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"[{self.name}] evicted {evicted}")
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=now,
                ttl=ttl,
                last_accessed=now,
            )

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def get_or_set(self, key: str, compute: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """
        Return the cached value or compute, store and return it.

        ``compute`` runs outside the lock; concurrent misses on the same key may
        each compute, and the last ``set`` wins.
        """
        sentinel = _MISSING
        value = self.get(key, sentinel)
        if value is not sentinel:
            return value
        value = compute()
        self.set(key, value, ttl)
        return value

    async def get_or_set_async(self, key: str, compute: Callable[[], Any],
                               ttl: Optional[float] = None) -> Any:
        """Like ``get_or_set`` but awaits ``compute`` when it returns an awaitable."""
        sentinel = _MISSING
        value = self.get(key, sentinel)
        if value is not sentinel:
            return value
        value = compute()
        if inspect.isawaitable(value):
            value = await value
        self.set(key, value, ttl)
        return value

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._expirations += len(expired)
        if expired:
            logger.debug(f"[{self.name}] purged {len(expired)} expired entries")
        return len(expired)

    def keys(self) -> List[str]:
        """Keys from least to most recently used (expired entries included until purged)."""
        with self._lock:
            return list(self._entries.keys())

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Bookkeeping for ``key`` without touching recency or counters."""
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                name=self.name,
                size=len(self._entries),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    @property
    def hit_rate(self) -> float:
        return self.stats().hit_rate

    def reset_stats(self):
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def memory_health(self) -> MemoryHealth:
        with self._lock:
            utilization = len(self._entries) / self.max_size
        if utilization < self.warning_threshold:
            status, advice = HealthStatus.HEALTHY, "Cache size is adequate."
        elif utilization < self.critical_threshold:
            status, advice = HealthStatus.WARNING, "Consider increasing max_size to reduce evictions."
        else:
            status, advice = HealthStatus.CRITICAL, "Cache is nearly full. Increase max_size immediately."
        return MemoryHealth(self.name, utilization, status, advice)


_MISSING = object()


# =============================================================================
# Registry
# =============================================================================

class CacheKind(Enum):
    CHART = "chart"
    GRID = "grid"
    PHONETIC = "phonetic"
    SCORE = "score"
    CHARACTER = "character"


class CacheRegistry:
    """
    One MemoryCache per computation kind.

    Sizes and TTLs come from ``cache.kinds`` in app.yaml unless overridden via
    ``sizes`` / ``ttls``. Pass a registry into the engine; build a fresh one in
    tests for isolation.
    """

    def __init__(self,
                 sizes: Optional[Dict[CacheKind, int]] = None,
                 ttls: Optional[Dict[CacheKind, float]] = None,
                 clock: Callable[[], float] = time.monotonic):
        sizes = sizes or {}
        ttls = ttls or {}
        cfg = get_setting("cache.kinds", {}) or {}
        self._caches: Dict[CacheKind, MemoryCache] = {}
        for kind in CacheKind:
            kind_cfg = cfg.get(kind.value) or {}
            max_size = sizes.get(kind, kind_cfg.get("max_size"))
            ttl = ttls.get(kind, kind_cfg.get("ttl_seconds"))
            if max_size is None or ttl is None:
                raise ValueError(f"cache.kinds.{kind.value} max_size and ttl_seconds must be set in app.yaml")
            self._caches[kind] = MemoryCache(max_size, ttl, name=kind.value, clock=clock)

    def get(self, kind: CacheKind) -> MemoryCache:
        return self._caches[kind]

    def __getitem__(self, kind: CacheKind) -> MemoryCache:
        return self._caches[kind]

    def __iter__(self):
        return iter(self._caches.items())

    def stats(self) -> Dict[str, CacheStats]:
        return {kind.value: cache.stats() for kind, cache in self._caches.items()}

    def memory_health(self) -> Dict[str, MemoryHealth]:
        return {kind.value: cache.memory_health() for kind, cache in self._caches.items()}

    def purge_expired(self) -> int:
        return sum(cache.purge_expired() for cache in self._caches.values())

    def clear(self):
        for cache in self._caches.values():
            cache.clear()

    def reset_stats(self):
        for cache in self._caches.values():
            cache.reset_stats()


_default_registry: Optional[CacheRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> CacheRegistry:
    """Process-wide registry used by production wiring."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = CacheRegistry()
        return _default_registry


# =============================================================================
# Keys
# =============================================================================

def chart_key(year: int, month: int, day: int, hour: int) -> str:
    return f"chart:{year:04d}-{month:02d}-{day:02d}:{hour:02d}"


def grid_key(surname_strokes: Sequence[int], given_strokes: Sequence[int]) -> str:
    surname = ",".join(str(s) for s in surname_strokes)
    given = ",".join(str(s) for s in given_strokes)
    return f"grid:{surname}|{given}"


def phonetic_key(readings: Iterable[str], tones: Iterable[int], surname_length: int) -> str:
    syllables = "-".join(f"{r}{t}" for r, t in zip(readings, tones))
    return f"phonetic:{surname_length}:{syllables}"


def score_key(full_name: str, surname: str, chart_id: Optional[str]) -> str:
    return f"score:{surname}|{full_name[len(surname):]}:{chart_id or 'none'}"


def character_key(char: str) -> str:
    return f"char:{char}"


__all__ = [
    "CacheEntry",
    "CacheKind",
    "CacheRegistry",
    "CacheStats",
    "HealthStatus",
    "MemoryCache",
    "MemoryHealth",
    "chart_key",
    "character_key",
    "default_registry",
    "grid_key",
    "phonetic_key",
    "score_key",
]
