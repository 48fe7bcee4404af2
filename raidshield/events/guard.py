"""
RaidShield - Guard Events
=========================

Routes gateway events to the spam and raid detectors.

DESIGN:
    Detectors catch Discord errors themselves. Anything else that escapes
    a detector is logged here and swallowed, so one bad event never stops
    processing of the next.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable

import discord
from discord.ext import commands

from raidshield.core.logger import logger

if TYPE_CHECKING:
    from raidshield.bot import GuardBot


class GuardEvents(commands.Cog):
    """Spam and raid detection listeners."""

    def __init__(self, bot: "GuardBot") -> None:
        self.bot = bot

    async def _run(self, detector: str, event: str, guild_id: int, coro: Awaitable) -> None:
        try:
            await coro
        except Exception as e:
            logger.error("Detector Failed", [
                ("Detector", detector),
                ("Event", event),
                ("Guild", str(guild_id)),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    # =========================================================================
    # Messages
    # =========================================================================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or message.author.bot:
            return
        await self._run(
            "Spam", "on_message", message.guild.id,
            self.bot.spam_detector.handle_message(message),
        )

    # =========================================================================
    # Members
    # =========================================================================

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        await self._run(
            "Join Raid", "on_member_join", member.guild.id,
            self.bot.join_detector.handle_member_join(member),
        )

    # =========================================================================
    # Channels & Roles
    # =========================================================================

    @commands.Cog.listener()
    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        await self._run(
            "Channel Raid", "on_guild_channel_create", channel.guild.id,
            self.bot.channel_detector.handle_channel_create(channel),
        )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        await self._run(
            "Channel Raid", "on_guild_channel_delete", channel.guild.id,
            self.bot.channel_detector.handle_channel_delete(channel),
        )

    @commands.Cog.listener()
    async def on_guild_role_create(self, role: discord.Role) -> None:
        await self._run(
            "Role Raid", "on_guild_role_create", role.guild.id,
            self.bot.role_detector.handle_role_create(role),
        )


async def setup(bot: "GuardBot") -> None:
    """Add the guard events cog to the bot."""
    await bot.add_cog(GuardEvents(bot))
    logger.debug("Guard Events Loaded")


__all__ = ["GuardEvents"]
