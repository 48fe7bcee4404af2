"""
RaidShield - Lockdown Models
============================

State and record types owned by the lockdown state machine.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from raidshield.core.rules import RaidKind

# channel_id -> {overwrite field: original value (None = inherit)}
ChannelSnapshots = Dict[int, Dict[str, Optional[bool]]]


class LockdownState(str, Enum):
    """UNLOCKED -> LOCKING -> LOCKED -> UNLOCKING -> UNLOCKED."""

    UNLOCKED = "unlocked"
    LOCKING = "locking"
    LOCKED = "locked"
    UNLOCKING = "unlocking"


@dataclass
class LockdownRecord:
    """
    One active lockdown.

    Attributes:
        guild_id: Locked guild.
        started_at: Unix timestamp of the lockdown start.
        duration_minutes: Time until automatic revert.
        raid_kind: What triggered it.
        original_permissions: Default role permission value captured
            before any mutation (None only if capture failed).
        channel_snapshots: Original @everyone overwrite fields per locked
            channel.
        state: Current lifecycle state.
        expiry_task: Pending automatic revert.
        ready: Set once the apply step has finished mutating.
    """
    guild_id: int
    started_at: float
    duration_minutes: int
    raid_kind: RaidKind
    original_permissions: Optional[int]
    channel_snapshots: ChannelSnapshots = field(default_factory=dict)
    state: LockdownState = LockdownState.LOCKING
    expiry_task: Optional[asyncio.Task] = field(default=None, repr=False)
    ready: asyncio.Event = field(default_factory=asyncio.Event, repr=False)


__all__ = ["ChannelSnapshots", "LockdownRecord", "LockdownState"]
