"""
RaidShield - Lockdown Command Cog
=================================

Operator commands for raid incidents.

Features:
- /unlock: lift the active lockdown early (cancels the auto-unlock timer)
- /cleanraid: delete channels tracked during a channel raid
- /raidstatus: lockdown state, tracked raid channels, recent incidents
- Per-user command cooldowns
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from raidshield.core.config import EmbedColors, has_mod_role
from raidshield.core.logger import logger
from raidshield.services.audit import IncidentType
from raidshield.services.raid_lockdown import LockdownState
from raidshield.services.remediation import delete_raid_channels
from raidshield.utils.discord_rate_limit import log_http_error

if TYPE_CHECKING:
    from raidshield.bot import GuardBot


# Recent incidents shown by /raidstatus
STATUS_INCIDENT_LIMIT = 5


class LockdownCog(commands.Cog):
    """Cog for raid incident commands."""

    def __init__(self, bot: "GuardBot") -> None:
        self.bot: "GuardBot" = bot

        logger.tree("Lockdown Cog Loaded", [
            ("Commands", "/unlock, /cleanraid, /raidstatus"),
        ], emoji="🔒")

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        """Only moderators, in a guild."""
        if interaction.guild is None:
            await interaction.response.send_message(
                "This command can only be used in a server.",
                ephemeral=True)
            return False

        if not has_mod_role(interaction.user, self.bot.config):
            logger.warning("Unauthorized Command", [
                ("Command", interaction.command.name if interaction.command else "?"),
                ("User", f"{interaction.user} ({interaction.user.id})"),
            ])
            await interaction.response.send_message(
                "You don't have permission to use this command.",
                ephemeral=True)
            return False

        return True

    async def _check_cooldown(self, interaction: discord.Interaction, command: str) -> bool:
        if self.bot.cooldowns.check_command(interaction.user.id, command):
            return True
        remaining = self.bot.cooldowns.remaining(f"{command}:{interaction.user.id}")
        await interaction.response.send_message(
            f"Please wait `{int(remaining) + 1}s` before using `/{command}` again.",
            ephemeral=True)
        return False

    # =========================================================================
    # Unlock Command
    # =========================================================================

    @app_commands.command(name="unlock", description="Lift the active raid lockdown")
    @app_commands.default_permissions(manage_guild=True)
    async def unlock(self, interaction: discord.Interaction) -> None:
        """Manual unlock: same restoration as the automatic expiry."""
        if not await self._check_cooldown(interaction, "unlock"):
            return

        guild = interaction.guild
        if not self.bot.lockdown.is_locked(guild.id):
            await interaction.response.send_message(
                "Server is not currently locked.",
                ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)

        logger.tree("UNLOCK INITIATED", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Moderator", f"{interaction.user.name} ({interaction.user.id})"),
        ], emoji="🔓")

        unlocked = await self.bot.lockdown.manual_unlock(guild, moderator=interaction.user)
        message = "🔓 Lockdown lifted." if unlocked else "The lockdown is already being lifted."
        try:
            await interaction.followup.send(message, ephemeral=True)
        except discord.HTTPException as e:
            log_http_error(e, "Unlock Response", [("Guild", str(guild.id))])

    # =========================================================================
    # Clean Raid Command
    # =========================================================================

    @app_commands.command(name="cleanraid", description="Delete channels created during a channel raid")
    @app_commands.default_permissions(manage_guild=True)
    async def cleanraid(self, interaction: discord.Interaction) -> None:
        """Delete every channel in the raid channel registry."""
        if not await self._check_cooldown(interaction, "cleanraid"):
            return

        guild = interaction.guild
        channel_ids = self.bot.registry.channel_ids(guild.id)
        if not channel_ids:
            await interaction.response.send_message(
                "No raid channels are being tracked.",
                ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)

        result = await delete_raid_channels(
            guild, channel_ids, f"Raid cleanup by {interaction.user}",
        )
        self.bot.registry.clear(guild.id)
        await self.bot.audit.record(
            IncidentType.CHANNELS_NUKED,
            guild.id,
            deleted=result.success_count,
            failed=result.failed_count,
            skipped=result.skipped_count,
            moderator_id=interaction.user.id,
        )

        embed = discord.Embed(
            title="💥 Raid Channels Cleaned",
            color=EmbedColors.SUCCESS if not result.failed_count else EmbedColors.WARNING,
        )
        embed.add_field(name="Deleted", value=f"`{result.success_count}`", inline=True)
        embed.add_field(name="Already Gone", value=f"`{result.skipped_count}`", inline=True)
        if result.failed_count:
            embed.add_field(name="Failed", value=f"`{result.failed_count}`", inline=True)

        try:
            await interaction.followup.send(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            log_http_error(e, "Clean Raid Response", [("Guild", str(guild.id))])

    # =========================================================================
    # Raid Status Command
    # =========================================================================

    @app_commands.command(name="raidstatus", description="Show lockdown state and raid tracking")
    @app_commands.default_permissions(manage_guild=True)
    async def raidstatus(self, interaction: discord.Interaction) -> None:
        if not await self._check_cooldown(interaction, "raidstatus"):
            return

        guild = interaction.guild
        await interaction.response.send_message(embed=self.build_status(guild), ephemeral=True)

    def build_status(self, guild: discord.Guild) -> discord.Embed:
        """Status embed for one guild."""
        state = self.bot.lockdown.state(guild.id)
        record = self.bot.lockdown.get_record(guild.id)

        embed = discord.Embed(
            title="🛡️ Raid Status",
            color=EmbedColors.ALERT if state is not LockdownState.UNLOCKED else EmbedColors.INFO,
            timestamp=discord.utils.utcnow(),
        )
        embed.add_field(name="Lockdown", value=f"`{state.value}`", inline=True)
        if record is not None:
            embed.add_field(name="Kind", value=f"`{record.raid_kind.value}`", inline=True)
            embed.add_field(name="Started", value=f"<t:{int(record.started_at)}:R>", inline=True)
            embed.add_field(name="Duration", value=f"`{record.duration_minutes}m`", inline=True)

        embed.add_field(
            name="Tracked Raid Channels",
            value=f"`{len(self.bot.registry.channel_ids(guild.id))}`",
            inline=True,
        )

        incidents = self.bot.audit.history(guild_id=guild.id)[-STATUS_INCIDENT_LIMIT:]
        if incidents:
            embed.add_field(
                name="Recent Incidents",
                value="\n".join(
                    f"<t:{int(i.timestamp)}:R> `{i.type.value}`" for i in reversed(incidents)
                ),
                inline=False,
            )
        return embed


async def setup(bot: "GuardBot") -> None:
    """Add the lockdown cog to the bot."""
    await bot.add_cog(LockdownCog(bot))


__all__ = ["LockdownCog"]
