"""
RaidShield - Events Package
===========================

Gateway event listeners, implemented as discord.py Cogs.

DESIGN:
    Each event file contains a Cog class with @commands.Cog.listener
    decorators. Cogs are loaded dynamically by the bot using
    load_extension().

    Event routing:
    - guard.py: messages, member joins, channel and role creation
"""

# =============================================================================
# Event Cog Registry
# =============================================================================

EVENT_COGS = [
    "raidshield.events.guard",
]
"""
List of event cog module paths for dynamic loading.
"""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "EVENT_COGS",
]
