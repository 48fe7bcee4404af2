"""
RaidShield - Commands Package
=============================

Operator slash commands, implemented as discord.py Cogs.

DESIGN:
    Each command file contains a Cog class with related commands.
    Cogs are loaded dynamically by the bot using load_extension().

    To add a new command:
    1. Create new_command.py in this directory
    2. Create a Cog class with @app_commands.command decorators
    3. Add async def setup(bot) function at the end
    4. Add the cog to COMMAND_COGS list below

Available Commands:
    /unlock: Lift the active raid lockdown (moderator)
    /cleanraid: Delete channels tracked during a channel raid (moderator)
    /raidstatus: Show lockdown state and tracked raid channels (moderator)
"""

# =============================================================================
# Command Cog Registry
# =============================================================================

COMMAND_COGS = [
    "raidshield.commands.lockdown",
]
"""
List of command cog module paths for dynamic loading.

DESIGN:
    Bot iterates this list and calls load_extension() for each.
"""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "COMMAND_COGS",
]
