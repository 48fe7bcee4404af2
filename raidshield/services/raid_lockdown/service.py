"""
RaidShield - Raid Lockdown Service
==================================

Per-guild lockdown state machine with automatic expiry.

DESIGN:
    States: UNLOCKED -> LOCKING -> LOCKED -> UNLOCKING -> UNLOCKED.
    A guild with no record is UNLOCKED.

    apply_lockdown():
        All guards (duration, kind, existing record, bot permissions) and
        the record insert run with no await in between, so two detectors
        racing on one guild cannot both pass. The default role snapshot is
        taken before the first mutation. The automatic revert is a
        cancellable task owned by the record.

    revert_lockdown() / manual_unlock():
        Same restoration path. The first caller flips the record to
        UNLOCKING and cancels the pending expiry task; any later caller
        (the timer included) sees UNLOCKING or no record and does
        nothing, so the resolution alert is sent exactly once.

    Every Discord mutation is attempted independently. Failures are
    logged per item and counted, never raised.
"""

from __future__ import annotations

import asyncio
import time
from typing import Collection, Dict, List, Optional

import discord

from raidshield.core.config import EmbedColors
from raidshield.core.constants import (
    LOCKDOWN_MAX_DURATION,
    LOCKDOWN_MIN_DURATION,
    LOCKDOWN_REQUIRED_PERMISSIONS,
    SECONDS_PER_MINUTE,
)
from raidshield.core.logger import logger
from raidshield.core.rules import RaidKind
from raidshield.services.audit import AuditLog, IncidentType
from raidshield.services.raid_detection.registry import RaidChannelRegistry
from raidshield.services.remediation import OperationResult, delete_raid_channels
from raidshield.utils.async_utils import create_safe_task, gather_with_logging
from raidshield.utils.discord_rate_limit import log_http_error

from .channel_ops import lock_all_channels, unlock_all_channels
from .models import LockdownRecord, LockdownState
from .permissions import lock_permissions, restore_permissions


class LockdownService:
    """
    Owns every LockdownRecord in the process.

    Attributes:
        registry: Raid channel registry, cleared on resolution.
        audit: Incident sink.
        alert_channel_id: Preferred channel for alerts.
        exclude_channel_ids: Channels never touched by a lockdown.
        minute: Length of a lockdown minute in seconds (scaled in tests).
    """

    def __init__(
        self,
        registry: RaidChannelRegistry,
        audit: AuditLog,
        alert_channel_id: Optional[int] = None,
        exclude_channel_ids: Collection[int] = (),
        minute: float = SECONDS_PER_MINUTE,
    ) -> None:
        self.registry = registry
        self.audit = audit
        self.alert_channel_id = alert_channel_id
        self.exclude_channel_ids = set(exclude_channel_ids or ())
        self.minute = minute
        self._records: Dict[int, LockdownRecord] = {}

    # =========================================================================
    # Queries
    # =========================================================================

    def get_record(self, guild_id: int) -> Optional[LockdownRecord]:
        return self._records.get(guild_id)

    def state(self, guild_id: int) -> LockdownState:
        record = self._records.get(guild_id)
        return record.state if record else LockdownState.UNLOCKED

    def is_locked(self, guild_id: int) -> bool:
        return guild_id in self._records

    def active_records(self) -> List[LockdownRecord]:
        return list(self._records.values())

    # =========================================================================
    # Guards
    # =========================================================================

    def _rejection_reason(
        self,
        guild: discord.Guild,
        duration_minutes: int,
        kind: Optional[RaidKind],
    ) -> Optional[str]:
        """Why a lockdown may not start, or None. Never awaits."""
        if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool):
            return f"duration {duration_minutes!r} is not a whole number of minutes"
        if not LOCKDOWN_MIN_DURATION <= duration_minutes <= LOCKDOWN_MAX_DURATION:
            return f"duration {duration_minutes}m outside {LOCKDOWN_MIN_DURATION}-{LOCKDOWN_MAX_DURATION}m"
        if kind is None:
            return "unrecognized raid kind"
        if guild.id in self._records:
            return f"already {self._records[guild.id].state.value}"

        me = guild.me
        if me is None:
            return "bot member not cached"
        perms = me.guild_permissions
        missing = [p for p in LOCKDOWN_REQUIRED_PERMISSIONS if not getattr(perms, p, False)]
        if missing and not perms.administrator:
            return f"missing permissions: {', '.join(missing)}"
        return None

    # =========================================================================
    # Apply
    # =========================================================================

    async def apply_lockdown(self, guild: discord.Guild, duration_minutes: int, raid_kind) -> bool:
        """
        Lock a guild down for `duration_minutes`.

        Args:
            guild: Guild to lock.
            duration_minutes: Minutes until automatic revert.
            raid_kind: RaidKind (or its string value) that triggered it.

        Returns:
            True if the lockdown started, False if it was rejected or the
            default role could not be changed.
        """
        kind = RaidKind.parse(raid_kind)
        rejection = self._rejection_reason(guild, duration_minutes, kind)
        if rejection:
            log = logger.debug if guild.id in self._records else logger.warning
            log("Lockdown Rejected", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Kind", str(raid_kind)),
                ("Reason", rejection),
            ])
            return False

        everyone = guild.default_role
        record = LockdownRecord(
            guild_id=guild.id,
            started_at=time.time(),
            duration_minutes=duration_minutes,
            raid_kind=kind,
            original_permissions=everyone.permissions.value,
        )
        self._records[guild.id] = record

        reason = f"RAID LOCKDOWN: {kind.value} raid detected"
        try:
            try:
                await everyone.edit(
                    permissions=lock_permissions(record.original_permissions),
                    reason=reason,
                )
            except discord.HTTPException as e:
                log_http_error(e, "Lockdown Role Edit", [
                    ("Guild", f"{guild.name} ({guild.id})"),
                ])
                self._records.pop(guild.id, None)
                return False

            channels = await lock_all_channels(
                guild, everyone, reason, record.channel_snapshots, self.exclude_channel_ids,
            )

            nuked: Optional[OperationResult] = None
            if kind is RaidKind.CHANNEL:
                nuked = await self._nuke_raid_channels(guild, reason)

            if record.state is LockdownState.LOCKING:
                record.state = LockdownState.LOCKED
                record.expiry_task = create_safe_task(
                    self._expire(guild, record),
                    f"Lockdown Expiry ({guild.id})",
                )
        finally:
            record.ready.set()

        logger.tree("RAID LOCKDOWN STARTED", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Kind", kind.value),
            ("Duration", f"{duration_minutes}m"),
            ("Channels Locked", str(channels.success_count)),
            ("Channels Failed", str(channels.failed_count)),
            ("Channels Skipped", str(channels.skipped_count)),
        ], emoji="🔒")

        await gather_with_logging(
            ("Lockdown Alert", self._send_alert(guild, self._build_lockdown_embed(record, channels, nuked))),
            ("Audit Record", self.audit.record(
                IncidentType.LOCKDOWN_STARTED,
                guild.id,
                raid_kind=kind.value,
                duration_minutes=duration_minutes,
                channels_locked=channels.success_count,
                channels_failed=channels.failed_count,
            )),
            context="Lockdown Apply",
        )
        return True

    async def _nuke_raid_channels(self, guild: discord.Guild, reason: str) -> OperationResult:
        channel_ids = self.registry.channel_ids(guild.id)
        result = await delete_raid_channels(guild, channel_ids, reason)
        self.registry.clear(guild.id)
        if channel_ids:
            await self.audit.record(
                IncidentType.CHANNELS_NUKED,
                guild.id,
                deleted=result.success_count,
                failed=result.failed_count,
                skipped=result.skipped_count,
            )
        return result

    async def _expire(self, guild: discord.Guild, record: LockdownRecord) -> None:
        await asyncio.sleep(record.duration_minutes * self.minute)
        if self._records.get(guild.id) is record:
            await self.revert_lockdown(guild, reason="Lockdown expired")

    # =========================================================================
    # Revert
    # =========================================================================

    async def revert_lockdown(
        self,
        guild: discord.Guild,
        reason: str = "Lockdown expired",
        moderator: Optional[discord.abc.User] = None,
    ) -> bool:
        """
        Restore the guild to its pre-lockdown permissions.

        Safe to call repeatedly: with no record, or a revert already in
        progress, it does nothing and returns False.
        """
        record = self._records.get(guild.id)
        if record is None or record.state is LockdownState.UNLOCKING:
            return False

        record.state = LockdownState.UNLOCKING
        task = record.expiry_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        # Let an in-flight apply finish taking its snapshots
        await record.ready.wait()

        # The apply failed before anything was locked
        if self._records.get(guild.id) is not record:
            record.state = LockdownState.UNLOCKED
            logger.debug("Lockdown Revert Skipped", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Reason", "lockdown never took effect"),
            ])
            return False

        everyone = guild.default_role
        if record.original_permissions is None:
            logger.warning("Lockdown Snapshot Missing", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Action", "Restoring safe default permissions"),
            ])

        role_restored = True
        try:
            await everyone.edit(
                permissions=restore_permissions(record.original_permissions, everyone.permissions),
                reason=f"RAID LOCKDOWN LIFTED: {reason}",
            )
        except discord.HTTPException as e:
            role_restored = False
            log_http_error(e, "Lockdown Role Restore", [
                ("Guild", f"{guild.name} ({guild.id})"),
            ])

        channels = await unlock_all_channels(
            guild, everyone, record.channel_snapshots, f"RAID LOCKDOWN LIFTED: {reason}",
        )

        self._records.pop(guild.id, None)
        self.registry.clear(guild.id)
        record.state = LockdownState.UNLOCKED

        logger.tree("RAID LOCKDOWN LIFTED", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Reason", reason),
            ("By", f"{moderator} ({moderator.id})" if moderator else "automatic"),
            ("Role Restored", "yes" if role_restored else "NO"),
            ("Channels Restored", str(channels.success_count)),
            ("Channels Failed", str(channels.failed_count)),
        ], emoji="🔓")

        await gather_with_logging(
            ("Resolution Alert", self._send_alert(guild, self._build_resolution_embed(reason, channels, moderator))),
            ("Audit Record", self.audit.record(
                IncidentType.LOCKDOWN_ENDED,
                guild.id,
                reason=reason,
                role_restored=role_restored,
                channels_restored=channels.success_count,
                channels_failed=channels.failed_count,
            )),
            context="Lockdown Revert",
        )
        return True

    async def manual_unlock(
        self,
        guild: discord.Guild,
        moderator: Optional[discord.abc.User] = None,
    ) -> bool:
        """Operator unlock: cancels the pending expiry, then reverts."""
        by = f" by {moderator}" if moderator else ""
        return await self.revert_lockdown(guild, reason=f"Manual unlock{by}", moderator=moderator)

    def shutdown(self) -> None:
        """Cancel every pending expiry task (records stay in memory)."""
        for record in self._records.values():
            if record.expiry_task and not record.expiry_task.done():
                record.expiry_task.cancel()

    # =========================================================================
    # Alerts
    # =========================================================================

    def _alert_channel(self, guild: discord.Guild) -> Optional[discord.abc.Messageable]:
        """Configured alert channel, else system channel, else first sendable channel."""
        me = guild.me

        def sendable(channel) -> bool:
            return channel is not None and me is not None and channel.permissions_for(me).send_messages

        if self.alert_channel_id:
            channel = guild.get_channel(self.alert_channel_id)
            if sendable(channel):
                return channel

        if sendable(guild.system_channel):
            return guild.system_channel

        for channel in guild.text_channels:
            if sendable(channel):
                return channel
        return None

    async def _send_alert(self, guild: discord.Guild, embed: discord.Embed) -> None:
        channel = self._alert_channel(guild)
        if channel is None:
            logger.warning("No Alert Channel", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Alert", embed.title or ""),
            ])
            return
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            log_http_error(e, "Lockdown Alert", [
                ("Guild", str(guild.id)),
                ("Channel", str(channel.id)),
            ])

    def _build_lockdown_embed(
        self,
        record: LockdownRecord,
        channels: OperationResult,
        nuked: Optional[OperationResult],
    ) -> discord.Embed:
        embed = discord.Embed(
            title="🚨 RAID LOCKDOWN",
            description=(
                f"A **{record.raid_kind.value}** raid has been detected.\n"
                "The server has been locked to protect members."
            ),
            color=EmbedColors.ALERT,
            timestamp=discord.utils.utcnow(),
        )
        unlock_at = int(record.started_at + record.duration_minutes * self.minute)
        embed.add_field(name="Auto-Unlock", value=f"<t:{unlock_at}:R>", inline=True)
        embed.add_field(name="Channels Locked", value=f"`{channels.success_count}`", inline=True)
        if nuked is not None:
            embed.add_field(name="Raid Channels Deleted", value=f"`{nuked.success_count}`", inline=True)
        if channels.failed_count:
            embed.add_field(name="Failed", value=f"`{channels.failed_count}` channels", inline=True)
        embed.add_field(name="Manual Unlock", value="Moderators can use `/unlock`", inline=False)
        return embed

    def _build_resolution_embed(
        self,
        reason: str,
        channels: OperationResult,
        moderator: Optional[discord.abc.User],
    ) -> discord.Embed:
        embed = discord.Embed(
            title="🔓 Lockdown Lifted",
            description="You may now resume normal activity.",
            color=EmbedColors.SUCCESS,
            timestamp=discord.utils.utcnow(),
        )
        embed.add_field(name="Reason", value=reason, inline=True)
        embed.add_field(name="Channels Restored", value=f"`{channels.success_count}`", inline=True)
        if moderator is not None:
            embed.add_field(name="Moderator", value=moderator.mention, inline=True)
        return embed


__all__ = ["LockdownService"]
