"""
RaidShield - Lockdown Channel Operations
========================================

Per-channel @everyone overwrite changes for lockdown and revert.

DESIGN:
    Every channel is handled independently, bounded by MAX_CONCURRENT_OPS.
    A failure on one channel is logged and counted, never raised, so the
    rest of the guild is still locked (or restored).
"""

from __future__ import annotations

from typing import Collection, Optional, Tuple

import discord

from raidshield.core.constants import LOG_TRUNCATE_MEDIUM, LOG_TRUNCATE_SHORT
from raidshield.core.logger import logger
from raidshield.services.remediation import OperationResult
from raidshield.utils.async_utils import run_bounded
from raidshield.utils.discord_rate_limit import log_http_error

from .constants import MAX_CONCURRENT_OPS
from .models import ChannelSnapshots
from .permissions import lock_overwrite, restore_overwrite, snapshot_overwrite


def can_manage(channel: discord.abc.GuildChannel) -> bool:
    """Whether the bot can edit overwrites on this channel."""
    me = channel.guild.me
    if me is None:
        return False
    perms = channel.permissions_for(me)
    return perms.manage_roles or perms.administrator


async def lock_text_channel(
    channel: discord.TextChannel,
    everyone_role: discord.Role,
    reason: str,
    snapshots: ChannelSnapshots,
) -> Tuple[bool, Optional[str]]:
    """
    Lock a single text channel.

    The original overwrite fields are stored in `snapshots` before the
    edit and dropped again if the edit fails.

    Returns:
        Tuple of (success, error_message).
    """
    current = channel.overwrites_for(everyone_role)
    snapshots[channel.id] = snapshot_overwrite(current)

    try:
        await channel.set_permissions(
            everyone_role,
            overwrite=lock_overwrite(current),
            reason=reason,
        )
        logger.debug("Channel Locked", [
            ("Channel", f"#{channel.name}"),
            ("ID", str(channel.id)),
        ])
        return True, None

    except discord.HTTPException as e:
        snapshots.pop(channel.id, None)
        log_http_error(e, "Channel Lock", [
            ("Channel", f"#{channel.name} ({channel.id})"),
        ])
        return False, f"#{channel.name}: {(e.text or 'HTTP error')[:LOG_TRUNCATE_SHORT]}"


async def unlock_text_channel(
    channel: discord.abc.GuildChannel,
    everyone_role: discord.Role,
    snapshot: Optional[dict],
    reason: str,
) -> Tuple[bool, Optional[str]]:
    """
    Restore a channel's @everyone overwrite from its snapshot.

    An overwrite left with no explicit values is removed entirely.

    Returns:
        Tuple of (success, error_message).
    """
    restored = restore_overwrite(channel.overwrites_for(everyone_role), snapshot)

    try:
        await channel.set_permissions(
            everyone_role,
            overwrite=None if restored.is_empty() else restored,
            reason=reason,
        )
        logger.debug("Channel Unlocked", [
            ("Channel", f"#{channel.name}"),
            ("ID", str(channel.id)),
        ])
        return True, None

    except discord.HTTPException as e:
        log_http_error(e, "Channel Unlock", [
            ("Channel", f"#{channel.name} ({channel.id})"),
        ])
        return False, f"#{channel.name}: {(e.text or 'HTTP error')[:LOG_TRUNCATE_SHORT]}"


def _collect(result: OperationResult, outcomes: list, operation: str) -> OperationResult:
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            result.failed_count += 1
            result.errors.append(str(outcome)[:LOG_TRUNCATE_MEDIUM])
            logger.error(f"{operation} Task Exception", [
                ("Error", str(outcome)[:LOG_TRUNCATE_MEDIUM]),
                ("Type", type(outcome).__name__),
            ])
            continue
        success, error = outcome
        if success:
            result.success_count += 1
        else:
            result.failed_count += 1
            if error:
                result.errors.append(error)
    return result


async def lock_all_channels(
    guild: discord.Guild,
    everyone_role: discord.Role,
    reason: str,
    snapshots: ChannelSnapshots,
    exclude_ids: Collection[int] = (),
) -> OperationResult:
    """
    Lock every manageable text channel in a guild concurrently.

    Excluded and unmanageable channels are skipped.
    """
    result = OperationResult()
    coros = []

    for channel in guild.text_channels:
        if channel.id in exclude_ids or not can_manage(channel):
            result.skipped_count += 1
            continue
        coros.append(lock_text_channel(channel, everyone_role, reason, snapshots))

    outcomes = await run_bounded(coros, MAX_CONCURRENT_OPS)
    return _collect(result, outcomes, "Channel Lock")


async def unlock_all_channels(
    guild: discord.Guild,
    everyone_role: discord.Role,
    snapshots: ChannelSnapshots,
    reason: str,
) -> OperationResult:
    """
    Restore every channel locked by this lockdown.

    Channels deleted in the meantime are skipped.
    """
    result = OperationResult()
    coros = []

    for channel_id, snapshot in snapshots.items():
        channel = guild.get_channel(channel_id)
        if channel is None:
            result.skipped_count += 1
            continue
        coros.append(unlock_text_channel(channel, everyone_role, snapshot, reason))

    outcomes = await run_bounded(coros, MAX_CONCURRENT_OPS)
    return _collect(result, outcomes, "Channel Unlock")


__all__ = [
    "can_manage",
    "lock_text_channel",
    "unlock_text_channel",
    "lock_all_channels",
    "unlock_all_channels",
]
