"""
RaidShield - Anti-Spam Service
==============================

Per-user message flood detection with purge and cooldown.

DESIGN:
    One rule per guild: N messages within W seconds. Each message is fed
    to the RateCounter under a "guild:user" key.

    On a breach the offender is cooled down and their counter reset
    before any Discord call is made, so concurrent messages from the
    same user take the cooldown path instead of re-triggering the purge.
    While cooled down, every new message is deleted without touching the
    counter.

    Pipeline per message:
    1. Skip bots, webhooks and DMs
    2. Read the guild's spam rule (missing or invalid: skip silently)
    3. Cooled down: delete the message, stop
    4. Observe; no breach: stop
    5. Cooldown + reset, purge, warn in channel, audit
"""

from typing import Callable, Optional

import discord

from raidshield.core.config import EmbedColors
from raidshield.core.constants import (
    NS_RECENT_MESSAGES,
    SPAM_COOLDOWN_SECONDS,
    SPAM_WARNING_DELETE_AFTER,
)
from raidshield.core.logger import logger
from raidshield.core.rules import RuleProvider, SpamRule
from raidshield.services.audit import AuditLog, IncidentType
from raidshield.services.cooldowns import CooldownRegister
from raidshield.services.rate_counter import RateCounter, user_key
from raidshield.services.remediation import MessagePurger, PurgeResult
from raidshield.utils.discord_rate_limit import log_http_error


# Outcomes returned by handle_message
OUTCOME_SUPPRESSED = "cooldown"
OUTCOME_SPAM = "spam"


class SpamDetector:
    """
    Message flood detection.

    Attributes:
        counter: Shared rate counter.
        rules: Read-only per-guild rules.
        cooldowns: Hard cooldown register for offenders.
        purger: Deletes the offending burst.
        audit: Incident sink.
    """

    def __init__(
        self,
        counter: RateCounter,
        rules: RuleProvider,
        cooldowns: CooldownRegister,
        purger: MessagePurger,
        audit: AuditLog,
        cooldown_seconds: float = SPAM_COOLDOWN_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.counter = counter
        self.rules = rules
        self.cooldowns = cooldowns
        self.purger = purger
        self.audit = audit
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock

    # =========================================================================
    # Exemptions
    # =========================================================================

    def _is_exempt(self, message: discord.Message) -> bool:
        if message.guild is None:
            return True
        if message.author.bot or message.webhook_id:
            return True
        return False

    async def _get_rule(self, guild_id: int) -> Optional[SpamRule]:
        rules = await self.rules.get_rules(guild_id)
        rule = rules.spam_rule() if rules else None
        if rule is None:
            return None
        if not rule.is_valid():
            logger.debug("Spam Rule Invalid", [
                ("Guild", str(guild_id)),
                ("Count", str(rule.message_count)),
                ("Window", f"{rule.time_window}s"),
            ])
            return None
        return rule

    # =========================================================================
    # Message Handling
    # =========================================================================

    async def handle_message(self, message: discord.Message) -> Optional[str]:
        """
        Run one message through spam detection.

        Args:
            message: The message that was just sent.

        Returns:
            "cooldown" if the message was deleted because its author is
            cooled down, "spam" if it triggered a purge, None otherwise.
        """
        if self._is_exempt(message):
            return None

        guild = message.guild
        rule = await self._get_rule(guild.id)
        if rule is None:
            return None

        key = user_key(guild.id, message.author.id)

        if self.cooldowns.is_active(key):
            await self.purger.delete_message(message)
            return OUTCOME_SUPPRESSED

        now = self._clock() if self._clock else None
        observation = self.counter.observe(
            NS_RECENT_MESSAGES, key, rule.time_window, rule.message_count, now=now,
        )
        if not observation.exceeded:
            return None

        self.cooldowns.apply(key, self.cooldown_seconds)
        self.counter.reset(NS_RECENT_MESSAGES, key)

        logger.tree("SPAM DETECTED", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("User", f"{message.author} ({message.author.id})"),
            ("Channel", f"#{getattr(message.channel, 'name', '?')} ({message.channel.id})"),
            ("Count", f"{observation.count}/{rule.message_count} in {rule.time_window}s"),
            ("Cooldown", f"{self.cooldown_seconds}s"),
        ], emoji="🛑")

        result = await self.purger.purge(message, window_seconds=rule.time_window)
        await self._send_warning(message, result)
        await self.audit.record(
            IncidentType.SPAM_DETECTED,
            guild.id,
            user_id=message.author.id,
            channel_id=message.channel.id,
            count=observation.count,
            threshold=rule.message_count,
            time_window=rule.time_window,
            deleted=result.total_deleted,
            failed=result.failed,
        )
        return OUTCOME_SPAM

    # =========================================================================
    # Warning Embed
    # =========================================================================

    def build_warning(self, member: discord.abc.User, result: PurgeResult) -> discord.Embed:
        embed = discord.Embed(
            title="🛑 SPAM DETECTED",
            description=f"{member.mention}, slow down. Your recent messages were removed.",
            color=EmbedColors.WARNING,
            timestamp=discord.utils.utcnow(),
        )
        embed.add_field(name="Messages Deleted", value=f"`{result.total_deleted}`", inline=True)
        embed.add_field(
            name="Cooldown",
            value=f"`{int(self.cooldown_seconds // 60) or 1}` min",
            inline=True,
        )
        return embed

    async def _send_warning(self, message: discord.Message, result: PurgeResult) -> None:
        try:
            await message.channel.send(
                embed=self.build_warning(message.author, result),
                delete_after=SPAM_WARNING_DELETE_AFTER,
            )
        except discord.HTTPException as e:
            log_http_error(e, "Spam Warning", [
                ("Channel", str(message.channel.id)),
            ])


__all__ = [
    "SpamDetector",
    "OUTCOME_SPAM",
    "OUTCOME_SUPPRESSED",
]
