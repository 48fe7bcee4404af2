"""
RaidShield - Cache Utilities
============================

Bounded, time-windowed caches shared by every detector.

DESIGN:
    EventCache is the single in-memory store behind rate counting. It is
    organised in namespaces ("recent-messages", "recent-joins", ...), each
    mapping a key to a list of TimestampedEvent. One EventCache is created
    per process and handed to every detector, so tests can build a fresh
    one instead of touching process-wide state.

    Two independent bounds keep memory flat:
    - Time: sweep() drops events older than a window, and keys left empty.
    - Size: enforce_size_limit() evicts whole keys, oldest surviving event
      first, whenever a namespace holds more keys than its limit. A key
      can be evicted while still inside its window; memory wins over
      precision.

    All mutations are synchronous (no awaits), so a coroutine never sees a
    half-updated namespace.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from raidshield.core.constants import (
    CACHE_CLEANUP_INTERVALS,
    CACHE_RETENTION_WINDOWS,
    CACHE_SIZE_LIMITS,
    DEFAULT_CACHE_SIZE_LIMIT,
)
from raidshield.core.logger import logger
from raidshield.utils.async_utils import create_safe_task

K = TypeVar("K")
V = TypeVar("V")


# =============================================================================
# Timestamped Events
# =============================================================================

@dataclass(frozen=True)
class TimestampedEvent:
    """
    One observed platform event.

    Attributes:
        occurred_at: Monotonic timestamp in seconds.
        subject_id: Optional id carried with the event (e.g. created channel).
    """
    occurred_at: float
    subject_id: Optional[int] = None


# =============================================================================
# Event Cache
# =============================================================================

class EventCache:
    """
    Namespaced store of timestamped event lists with per-namespace limits.

    Cache misses are empty lists; no method raises for unknown keys or
    namespaces.
    """

    def __init__(
        self,
        size_limits: Optional[Dict[str, int]] = None,
        default_limit: int = DEFAULT_CACHE_SIZE_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits: Dict[str, int] = dict(CACHE_SIZE_LIMITS if size_limits is None else size_limits)
        self._default_limit = default_limit
        self._clock = clock
        self._namespaces: Dict[str, Dict[Hashable, List[TimestampedEvent]]] = {}

    # =========================================================================
    # Helpers
    # =========================================================================

    def now(self) -> float:
        """Current time on the cache clock."""
        return self._clock()

    def limit_for(self, namespace: str) -> int:
        return self._limits.get(namespace, self._default_limit)

    def _bucket(self, namespace: str) -> Dict[Hashable, List[TimestampedEvent]]:
        return self._namespaces.setdefault(namespace, {})

    # =========================================================================
    # Get / Set
    # =========================================================================

    def get(self, namespace: str, key: Hashable) -> List[TimestampedEvent]:
        """Return a copy of the events stored for key."""
        return list(self._namespaces.get(namespace, {}).get(key, ()))

    def set(self, namespace: str, key: Hashable, events: List[TimestampedEvent]) -> None:
        """Replace the events for key (an empty list deletes the key)."""
        if not events:
            self.delete(namespace, key)
            return
        self._bucket(namespace)[key] = list(events)
        self.enforce_size_limit(namespace)

    def delete(self, namespace: str, key: Hashable) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed.
        """
        return self._namespaces.get(namespace, {}).pop(key, None) is not None

    def clear(self, namespace: Optional[str] = None) -> None:
        """Clear one namespace, or everything."""
        if namespace is None:
            self._namespaces.clear()
        else:
            self._namespaces.pop(namespace, None)

    def keys(self, namespace: str) -> List[Hashable]:
        return list(self._namespaces.get(namespace, {}).keys())

    def size(self, namespace: str) -> int:
        """Number of distinct keys in a namespace."""
        return len(self._namespaces.get(namespace, {}))

    # =========================================================================
    # Recording
    # =========================================================================

    def record_event(
        self,
        namespace: str,
        key: Hashable,
        now: Optional[float] = None,
        subject_id: Optional[int] = None,
        enforce_limit: bool = True,
    ) -> List[TimestampedEvent]:
        """
        Append an event for key and enforce the namespace size limit.

        Args:
            enforce_limit: Callers that prune the key before limiting
                (RateCounter) pass False and enforce the limit themselves.

        Returns:
            The key's events after the append (a copy; empty if the key was
            evicted by the size limit in the same step).
        """
        now = self.now() if now is None else now
        bucket = self._bucket(namespace)
        bucket.setdefault(key, []).append(TimestampedEvent(occurred_at=now, subject_id=subject_id))
        if enforce_limit:
            self.enforce_size_limit(namespace)
        return self.get(namespace, key)

    def discard_subject(self, namespace: str, key: Hashable, subject_id: int) -> bool:
        """
        Remove events carrying subject_id from key.

        Returns:
            True if any event was removed.
        """
        events = self._namespaces.get(namespace, {}).get(key)
        if not events:
            return False
        kept = [e for e in events if e.subject_id != subject_id]
        if len(kept) == len(events):
            return False
        self.set(namespace, key, kept)
        return True

    # =========================================================================
    # Time Window Sweep
    # =========================================================================

    def sweep_key(
        self,
        namespace: str,
        key: Hashable,
        window_seconds: float,
        now: Optional[float] = None,
    ) -> List[TimestampedEvent]:
        """
        Drop events of one key older than the window.

        An event survives while now - occurred_at < window_seconds.

        Returns:
            The surviving events (a copy).
        """
        now = self.now() if now is None else now
        bucket = self._namespaces.get(namespace)
        if not bucket or key not in bucket:
            return []
        survivors = [e for e in bucket[key] if now - e.occurred_at < window_seconds]
        if survivors:
            bucket[key] = survivors
        else:
            del bucket[key]
        return list(survivors)

    def sweep(self, namespace: str, window_seconds: float, now: Optional[float] = None) -> int:
        """
        Drop events older than the window for every key in the namespace.

        Keys left with no events are deleted. Sweeping twice with no new
        events leaves the same survivors as sweeping once.

        Returns:
            Number of keys deleted.
        """
        now = self.now() if now is None else now
        bucket = self._namespaces.get(namespace)
        if not bucket:
            return 0

        removed = 0
        for key in list(bucket.keys()):
            survivors = [e for e in bucket[key] if now - e.occurred_at < window_seconds]
            if survivors:
                bucket[key] = survivors
            else:
                del bucket[key]
                removed += 1
        return removed

    # =========================================================================
    # Size Limit
    # =========================================================================

    def enforce_size_limit(self, namespace: str, limit: Optional[int] = None) -> int:
        """
        Evict keys until the namespace holds at most `limit` keys.

        Keys are ranked by their oldest surviving event; the oldest go
        first.

        Returns:
            Number of keys evicted.
        """
        limit = self.limit_for(namespace) if limit is None else limit
        bucket = self._namespaces.get(namespace)
        if not bucket or len(bucket) <= limit:
            return 0

        ranked = sorted(
            bucket.items(),
            key=lambda item: min((e.occurred_at for e in item[1]), default=float("-inf")),
        )
        excess = len(bucket) - max(limit, 0)
        for key, _ in ranked[:excess]:
            del bucket[key]

        logger.debug("Cache Eviction", [
            ("Namespace", namespace),
            ("Evicted", str(excess)),
            ("Limit", str(limit)),
        ])
        return excess


# =============================================================================
# Periodic Sweeper
# =============================================================================

class CacheSweeper:
    """
    Runs sweep + size enforcement per namespace on a fixed interval.

    Each namespace gets its own background task so a slow namespace never
    delays another. Because every run removes anything older than the
    retention window, stale events never outlive two sweep periods.
    """

    def __init__(
        self,
        cache: EventCache,
        intervals: Optional[Dict[str, float]] = None,
        windows: Optional[Dict[str, float]] = None,
    ) -> None:
        self.cache = cache
        self._intervals = dict(CACHE_CLEANUP_INTERVALS if intervals is None else intervals)
        self._windows = dict(CACHE_RETENTION_WINDOWS if windows is None else windows)
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def run_once(self, namespace: str) -> Tuple[int, int]:
        """
        Sweep one namespace now.

        Returns:
            (keys expired by time, keys evicted by size).
        """
        window = self._windows.get(namespace, self._intervals.get(namespace, 0))
        expired = self.cache.sweep(namespace, window)
        evicted = self.cache.enforce_size_limit(namespace)
        if expired or evicted:
            logger.debug("Cache Sweep", [
                ("Namespace", namespace),
                ("Expired Keys", str(expired)),
                ("Evicted Keys", str(evicted)),
                ("Remaining", str(self.cache.size(namespace))),
            ])
        return expired, evicted

    async def _loop(self, namespace: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.run_once(namespace)

    def start(self) -> None:
        """Start one sweep task per configured namespace."""
        for namespace, interval in self._intervals.items():
            task = self._tasks.get(namespace)
            if task and not task.done():
                continue
            self._tasks[namespace] = create_safe_task(
                self._loop(namespace, interval),
                f"Cache Sweep ({namespace})",
            )

        logger.tree("Cache Sweeper Started", [
            (namespace, f"every {interval}s, keep {self._windows.get(namespace, interval)}s")
            for namespace, interval in self._intervals.items()
        ], emoji="🧹")

    def stop(self) -> None:
        """Cancel all sweep tasks."""
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()


# =============================================================================
# Simple TTL Cache
# =============================================================================

class TTLCache(Generic[K, V]):
    """
    Single-value-per-key cache with expiry and oldest-first eviction.

    Used for per-guild rule documents. Safe for single-threaded async use.
    """

    def __init__(self, ttl: timedelta, max_size: int = 100):
        """
        Args:
            ttl: Time-to-live for cached items.
            max_size: Maximum number of items to store.
        """
        self._ttl = ttl
        self._max_size = max_size
        self._cache: Dict[K, Tuple[V, datetime]] = {}

    def get(self, key: K) -> Optional[V]:
        """Return the cached value, or None if missing or expired."""
        if key not in self._cache:
            return None

        value, cached_at = self._cache[key]
        if datetime.now() - cached_at > self._ttl:
            self._cache.pop(key, None)
            return None

        return value

    def set(self, key: K, value: V) -> None:
        if len(self._cache) >= self._max_size and key not in self._cache:
            self._evict_oldest()
        self._cache[key] = (value, datetime.now())

    def delete(self, key: K) -> bool:
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        self._cache.clear()

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
        del self._cache[oldest_key]

    def cleanup_expired(self) -> int:
        """
        Remove all expired items.

        Returns:
            Number of items removed.
        """
        now = datetime.now()
        expired_keys = [
            k for k, (_, cached_at) in self._cache.items()
            if now - cached_at > self._ttl
        ]
        for key in expired_keys:
            del self._cache[key]
        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None


__all__ = [
    "TimestampedEvent",
    "EventCache",
    "CacheSweeper",
    "TTLCache",
]
