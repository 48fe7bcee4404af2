"""
RaidShield - Raid Lockdown Constants
====================================

The lockdown policy: which permissions a lockdown takes away.

DESIGN:
    One canonical policy applies to every raid kind. The default role
    keeps View Channels and Read Message History; everything that lets a
    member post, react, spread invites or join voice is denied. Only the
    bits in LOCKDOWN_DENY are ever touched, on the role and on channel
    overwrites alike, so restoring them restores the original state.
"""

import discord

# Maximum concurrent channel operations
MAX_CONCURRENT_OPS: int = 10

# Permissions removed from the default role during a lockdown
LOCKDOWN_DENY = discord.Permissions(
    send_messages=True,
    send_messages_in_threads=True,
    create_public_threads=True,
    create_private_threads=True,
    add_reactions=True,
    attach_files=True,
    embed_links=True,
    use_external_emojis=True,
    use_external_stickers=True,
    create_instant_invite=True,
    connect=True,
)

# Fallback for the masked bits when no snapshot exists
SAFE_DEFAULT_PERMISSIONS = discord.Permissions(
    send_messages=True,
    send_messages_in_threads=True,
    create_public_threads=True,
    create_private_threads=True,
    add_reactions=True,
    attach_files=True,
    embed_links=True,
    use_external_emojis=True,
    use_external_stickers=True,
    create_instant_invite=True,
    connect=True,
)

# Text channel overwrite fields denied for @everyone
CHANNEL_LOCK_FIELDS = (
    "send_messages",
    "send_messages_in_threads",
    "create_public_threads",
    "create_private_threads",
    "add_reactions",
    "attach_files",
    "embed_links",
    "use_external_emojis",
)


__all__ = [
    "MAX_CONCURRENT_OPS",
    "LOCKDOWN_DENY",
    "SAFE_DEFAULT_PERMISSIONS",
    "CHANNEL_LOCK_FIELDS",
]
