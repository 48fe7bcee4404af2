"""
RaidShield - Lockdown Permission Math
=====================================

Pure functions computing locked and restored permission sets.

DESIGN:
    Only bits in LOCKDOWN_DENY change:
        locked   = snapshot & ~mask
        restored = (current & ~mask) | (snapshot & mask)
    so restore(snapshot, lock(snapshot)) == snapshot for any snapshot,
    and edits an operator makes to unrelated bits during the lockdown
    survive the revert.
"""

from typing import Dict, Optional

import discord

from .constants import CHANNEL_LOCK_FIELDS, LOCKDOWN_DENY, SAFE_DEFAULT_PERMISSIONS


def _value(permissions) -> int:
    return permissions.value if isinstance(permissions, discord.Permissions) else int(permissions)


def lock_permissions(snapshot, mask: discord.Permissions = LOCKDOWN_DENY) -> discord.Permissions:
    """Permissions for the default role while locked."""
    return discord.Permissions(_value(snapshot) & ~mask.value)


def restore_permissions(
    snapshot,
    current,
    mask: discord.Permissions = LOCKDOWN_DENY,
) -> discord.Permissions:
    """
    Permissions for the default role after a lockdown.

    Args:
        snapshot: Pre-lockdown permissions (value or Permissions), or None
            to fall back to SAFE_DEFAULT_PERMISSIONS for the masked bits.
        current: The role's permissions right now.
    """
    source = SAFE_DEFAULT_PERMISSIONS.value if snapshot is None else _value(snapshot)
    return discord.Permissions((_value(current) & ~mask.value) | (source & mask.value))


# =============================================================================
# Channel Overwrites
# =============================================================================

def snapshot_overwrite(overwrite: discord.PermissionOverwrite) -> Dict[str, Optional[bool]]:
    """Capture the lock fields of an overwrite (None = inherit)."""
    return {name: getattr(overwrite, name) for name in CHANNEL_LOCK_FIELDS}


def lock_overwrite(overwrite: discord.PermissionOverwrite) -> discord.PermissionOverwrite:
    """Copy of overwrite with every lock field denied."""
    locked = discord.PermissionOverwrite.from_pair(*overwrite.pair())
    for name in CHANNEL_LOCK_FIELDS:
        setattr(locked, name, False)
    return locked


def restore_overwrite(
    current: discord.PermissionOverwrite,
    snapshot: Optional[Dict[str, Optional[bool]]],
) -> discord.PermissionOverwrite:
    """
    Copy of current with the lock fields set back to their snapshot.

    Without a snapshot the lock fields are reset to inherit.
    """
    restored = discord.PermissionOverwrite.from_pair(*current.pair())
    for name in CHANNEL_LOCK_FIELDS:
        setattr(restored, name, (snapshot or {}).get(name))
    return restored


__all__ = [
    "lock_permissions",
    "restore_permissions",
    "snapshot_overwrite",
    "lock_overwrite",
    "restore_overwrite",
]
