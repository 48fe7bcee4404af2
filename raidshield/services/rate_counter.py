"""
RaidShield - Rate Counter
=========================

Answers "has key K seen N events within the last W seconds?" for every
detector, on top of the shared EventCache.

DESIGN:
    observe() runs four steps in a fixed order, all synchronous:
    1. Append the new event (so the triggering event counts)
    2. Prune that key to the window (so stale events never inflate it)
    3. Enforce the namespace size limit
    4. Compare count >= threshold
"""

from dataclasses import dataclass
from typing import Hashable, Optional

from raidshield.utils.cache import EventCache


# =============================================================================
# Rate Keys
# =============================================================================

def user_key(guild_id: int, user_id: int) -> str:
    """Rate key for per-user counters (spam)."""
    return f"{guild_id}:{user_id}"


def guild_key(guild_id: int) -> str:
    """Rate key for guild-wide counters (raids)."""
    return str(guild_id)


# =============================================================================
# Rate Counter
# =============================================================================

@dataclass(frozen=True)
class RateObservation:
    """Result of one observe() call."""
    count: int
    exceeded: bool


class RateCounter:
    """Sliding-window event counter backed by an EventCache."""

    def __init__(self, cache: EventCache) -> None:
        self.cache = cache

    def observe(
        self,
        namespace: str,
        key: Hashable,
        window_seconds: float,
        threshold: int,
        now: Optional[float] = None,
        subject_id: Optional[int] = None,
    ) -> RateObservation:
        """
        Record one event for key and check it against the threshold.

        Args:
            namespace: Cache namespace of the detector.
            key: Rate key (see user_key / guild_key).
            window_seconds: Sliding window length.
            threshold: Event count that counts as a breach.
            now: Event time on the cache clock (defaults to now).
            subject_id: Optional id stored with the event.

        Returns:
            RateObservation with the in-window count and whether
            count >= threshold.
        """
        now = self.cache.now() if now is None else now
        self.cache.record_event(namespace, key, now=now, subject_id=subject_id, enforce_limit=False)
        count = len(self.cache.sweep_key(namespace, key, window_seconds, now=now))
        self.cache.enforce_size_limit(namespace)
        return RateObservation(count=count, exceeded=count >= threshold)

    def count(
        self,
        namespace: str,
        key: Hashable,
        window_seconds: float,
        now: Optional[float] = None,
    ) -> int:
        """In-window event count for key, without recording anything."""
        now = self.cache.now() if now is None else now
        return sum(
            1 for e in self.cache.get(namespace, key)
            if now - e.occurred_at < window_seconds
        )

    def reset(self, namespace: str, key: Hashable) -> bool:
        """Forget key after a handled incident so detection restarts cleanly."""
        return self.cache.delete(namespace, key)


__all__ = [
    "RateCounter",
    "RateObservation",
    "user_key",
    "guild_key",
]
