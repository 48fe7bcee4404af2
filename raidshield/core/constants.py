"""
RaidShield - Centralized Constants
==================================

All magic numbers and constants are defined here for maintainability.
Import from this module instead of hardcoding values.
"""

from typing import Dict

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# =============================================================================
# Cache Namespaces
# =============================================================================

NS_RECENT_MESSAGES = "recent-messages"
NS_RECENT_JOINS = "recent-joins"
NS_RECENT_CHANNELS = "recent-channels"
NS_RECENT_ROLES = "recent-roles"
NS_RAID_CHANNELS = "raid-channels"

# Max distinct keys per namespace
CACHE_SIZE_LIMITS: Dict[str, int] = {
    NS_RECENT_MESSAGES: 1000,
    NS_RECENT_JOINS: 500,
    NS_RECENT_CHANNELS: 200,
    NS_RECENT_ROLES: 200,
    NS_RAID_CHANNELS: 100,
}
DEFAULT_CACHE_SIZE_LIMIT = 1000

# Sweep schedule per namespace: (interval, retention window)
CACHE_CLEANUP_INTERVALS: Dict[str, int] = {
    NS_RECENT_MESSAGES: 5 * SECONDS_PER_MINUTE,
    NS_RECENT_JOINS: 10 * SECONDS_PER_MINUTE,
    NS_RECENT_CHANNELS: 15 * SECONDS_PER_MINUTE,
    NS_RECENT_ROLES: 15 * SECONDS_PER_MINUTE,
    NS_RAID_CHANNELS: 30 * SECONDS_PER_MINUTE,
}
CACHE_RETENTION_WINDOWS: Dict[str, int] = {
    NS_RECENT_MESSAGES: 5 * SECONDS_PER_MINUTE,
    NS_RECENT_JOINS: 10 * SECONDS_PER_MINUTE,
    NS_RECENT_CHANNELS: 15 * SECONDS_PER_MINUTE,
    NS_RECENT_ROLES: 15 * SECONDS_PER_MINUTE,
    NS_RAID_CHANNELS: 30 * SECONDS_PER_MINUTE,
}

# Per-guild rule cache TTL
CONFIG_CACHE_TTL = 5 * SECONDS_PER_MINUTE

# =============================================================================
# Cooldowns & Debounce (seconds)
# =============================================================================

SPAM_COOLDOWN_SECONDS = 5 * SECONDS_PER_MINUTE  # Offender suppression after a purge
RAID_DEBOUNCE_DELAY = 5.0                       # Quiet period before a lockdown fires

COMMAND_COOLDOWNS: Dict[str, int] = {
    "unlock": 30,
    "cleanraid": 60,
    "raidstatus": 10,
}

# =============================================================================
# Lockdown
# =============================================================================

LOCKDOWN_MIN_DURATION = 1       # minutes
LOCKDOWN_MAX_DURATION = 1440    # minutes (24 hours)

# Bot permissions required before any lockdown mutation
LOCKDOWN_REQUIRED_PERMISSIONS = ("manage_roles", "manage_channels", "send_messages")

# =============================================================================
# Message Purge
# =============================================================================

PURGE_FETCH_PAGES = 3           # Paginated history fetches per incident
PURGE_PAGE_SIZE = 100           # Messages per fetch
PURGE_RECENCY_SECONDS = 60      # Minimum burst tail window; widened to 2x the rule window
PURGE_BATCH_SIZE = 10           # Messages per bulk delete call
BULK_DELETE_MAX_AGE = 14 * SECONDS_PER_DAY  # Discord rejects older messages
SPAM_WARNING_DELETE_AFTER = 30  # Seconds before the in-channel warning disappears

# =============================================================================
# Logging
# =============================================================================

LOG_TRUNCATE_SHORT = 50
LOG_TRUNCATE_MEDIUM = 100
