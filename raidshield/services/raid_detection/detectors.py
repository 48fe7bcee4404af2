"""
RaidShield - Raid Detectors
===========================

Guild-wide burst detection for joins, channel creations and role
creations.

DESIGN:
    Each detector consumes one gateway event type and counts it under the
    guild key in its own cache namespace. On a breach:
    1. The counter key is reset (synchronously)
    2. The lockdown is debounced per (guild, raid kind), so a burst of
       breaches reaches the state machine once
    3. A raid_detected incident is recorded

    The lockdown state machine's "already locked" guard remains the
    backstop if two bursts still race past the debounce.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

import discord

from raidshield.core.constants import (
    NS_RECENT_CHANNELS,
    NS_RECENT_JOINS,
    NS_RECENT_ROLES,
)
from raidshield.core.logger import logger
from raidshield.core.rules import RaidKind, RaidRule, RuleProvider
from raidshield.services.audit import AuditLog, IncidentType
from raidshield.services.cooldowns import Debouncer
from raidshield.services.rate_counter import RateCounter, guild_key

from .registry import RaidChannelRegistry

if TYPE_CHECKING:
    from raidshield.services.raid_lockdown import LockdownService


# =============================================================================
# Base Detector
# =============================================================================

class RaidDetector:
    """Shared breach handling; subclasses bind a kind and a namespace."""

    kind: RaidKind = RaidKind.GENERAL
    namespace: str = ""

    def __init__(
        self,
        counter: RateCounter,
        rules: RuleProvider,
        lockdown: "LockdownService",
        debouncer: Debouncer,
        audit: AuditLog,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.counter = counter
        self.rules = rules
        self.lockdown = lockdown
        self.debouncer = debouncer
        self.audit = audit
        self._clock = clock

    async def _get_rule(self, guild_id: int) -> Optional[RaidRule]:
        rules = await self.rules.get_rules(guild_id)
        rule = rules.raid_rule(self.kind) if rules else None
        if rule is None:
            return None
        if not rule.is_valid():
            logger.debug("Raid Rule Invalid", [
                ("Guild", str(guild_id)),
                ("Kind", self.kind.value),
                ("Threshold", str(rule.threshold)),
                ("Window", f"{rule.time_window}s"),
                ("Lockdown", f"{rule.lockdown_duration}m"),
            ])
            return None
        return rule

    async def observe(
        self,
        guild: discord.Guild,
        subject_id: Optional[int] = None,
        rule: Optional[RaidRule] = None,
    ) -> bool:
        """
        Count one event for the guild and react to a breach.

        Args:
            rule: Already-resolved rule; looked up when omitted.

        Returns:
            True if this event breached the rule.
        """
        if rule is None:
            rule = await self._get_rule(guild.id)
        if rule is None:
            return False

        key = guild_key(guild.id)
        now = self._clock() if self._clock else None
        observation = self.counter.observe(
            self.namespace, key, rule.time_window, rule.threshold,
            now=now, subject_id=subject_id,
        )
        if not observation.exceeded:
            return False

        self.counter.reset(self.namespace, key)
        self.debouncer.trigger(
            (guild.id, self.kind),
            lambda: self.lockdown.apply_lockdown(guild, rule.lockdown_duration, self.kind),
        )

        await self.audit.record(
            IncidentType.RAID_DETECTED,
            guild.id,
            raid_kind=self.kind.value,
            count=observation.count,
            threshold=rule.threshold,
            time_window=rule.time_window,
            lockdown_duration=rule.lockdown_duration,
        )
        return True


# =============================================================================
# Concrete Detectors
# =============================================================================

class JoinRaidDetector(RaidDetector):
    """Member join bursts."""

    kind = RaidKind.JOIN
    namespace = NS_RECENT_JOINS

    async def handle_member_join(self, member: discord.Member) -> bool:
        return await self.observe(member.guild, subject_id=member.id)


class ChannelRaidDetector(RaidDetector):
    """Channel creation bursts; created channels are tracked for cleanup."""

    kind = RaidKind.CHANNEL
    namespace = NS_RECENT_CHANNELS

    def __init__(self, *args, registry: RaidChannelRegistry, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.registry = registry

    async def handle_channel_create(self, channel: discord.abc.GuildChannel) -> bool:
        # Only guilds watching for channel raids track created channels
        rule = await self._get_rule(channel.guild.id)
        if rule is None:
            return False
        self.registry.add(channel.guild.id, channel.id)
        return await self.observe(channel.guild, subject_id=channel.id, rule=rule)

    async def handle_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if self.registry.discard(channel.guild.id, channel.id):
            logger.debug("Raid Channel Untracked", [
                ("Guild", str(channel.guild.id)),
                ("Channel", str(channel.id)),
            ])


class RoleRaidDetector(RaidDetector):
    """Role creation bursts."""

    kind = RaidKind.ROLE
    namespace = NS_RECENT_ROLES

    async def handle_role_create(self, role: discord.Role) -> bool:
        return await self.observe(role.guild, subject_id=role.id)


__all__ = [
    "RaidDetector",
    "JoinRaidDetector",
    "ChannelRaidDetector",
    "RoleRaidDetector",
]
