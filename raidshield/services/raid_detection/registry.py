"""
RaidShield - Raid Channel Registry
==================================

Per-guild channel IDs created during the current observation window.

DESIGN:
    Stored in the shared EventCache ("raid-channels" namespace), one key
    per guild, each event carrying the created channel id. The cache
    sweeper expires old entries; lockdown resolution and /cleanraid clear
    the guild explicitly.
"""

from typing import List, Optional

from raidshield.core.constants import NS_RAID_CHANNELS
from raidshield.services.rate_counter import guild_key
from raidshield.utils.cache import EventCache


class RaidChannelRegistry:
    """Tracks channels that may have been created by a channel raid."""

    def __init__(self, cache: EventCache, namespace: str = NS_RAID_CHANNELS) -> None:
        self.cache = cache
        self.namespace = namespace

    def add(self, guild_id: int, channel_id: int, now: Optional[float] = None) -> None:
        if channel_id in self.channel_ids(guild_id):
            return
        self.cache.record_event(self.namespace, guild_key(guild_id), now=now, subject_id=channel_id)

    def discard(self, guild_id: int, channel_id: int) -> bool:
        """Forget a channel (it was deleted by someone else)."""
        return self.cache.discard_subject(self.namespace, guild_key(guild_id), channel_id)

    def channel_ids(self, guild_id: int) -> List[int]:
        """Tracked channel ids, oldest first."""
        return [
            e.subject_id for e in self.cache.get(self.namespace, guild_key(guild_id))
            if e.subject_id is not None
        ]

    def clear(self, guild_id: int) -> None:
        self.cache.delete(self.namespace, guild_key(guild_id))


__all__ = ["RaidChannelRegistry"]
