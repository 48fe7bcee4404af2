"""
RaidShield - Configuration Module
=================================

Centralized process configuration with environment variable validation.

DESIGN:
    This module provides a single source of truth for process-level
    settings, loaded from environment variables at startup. Per-guild
    detection rules live in the external config store and are read
    through raidshield.core.rules, never from here.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - Out-of-range numeric values are clamped with a warning
"""

import os
from dataclasses import dataclass
from typing import Optional, Set

from raidshield.core.constants import (
    RAID_DEBOUNCE_DELAY,
    SPAM_COOLDOWN_SECONDS,
)


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Process configuration loaded from environment variables.

    DESIGN:
        Required fields raise ConfigValidationError if missing.
        Optional fields have sensible defaults for development.
        All IDs are integers to prevent string comparison bugs.

    Attributes:
        discord_token: Discord bot authentication token.
        developer_id: User ID allowed to run every operator command.
        alert_channel_id: Channel for raid/lockdown alerts (falls back to
            the guild system channel when unset).
        moderation_role_id: Role allowed to run operator commands.
        rules_file: Path to the JSON rule document (config store export).
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str

    # -------------------------------------------------------------------------
    # Optional: Identities
    # -------------------------------------------------------------------------

    developer_id: Optional[int] = None
    moderation_role_id: Optional[int] = None

    # -------------------------------------------------------------------------
    # Optional: Channels
    # -------------------------------------------------------------------------

    alert_channel_id: Optional[int] = None
    lockdown_exclude_ids: Set[int] = None  # Channel IDs left untouched by lockdown

    # -------------------------------------------------------------------------
    # Optional: Rules Store
    # -------------------------------------------------------------------------

    rules_file: str = "rules.json"

    # -------------------------------------------------------------------------
    # Optional: Timing (seconds)
    # -------------------------------------------------------------------------

    spam_cooldown_seconds: int = SPAM_COOLDOWN_SECONDS
    raid_debounce_seconds: float = RAID_DEBOUNCE_DELAY

    # -------------------------------------------------------------------------
    # Optional: Webhooks
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Standardized color palette for alert embeds."""

    RED = 0xDC3545      # Raid detected, lockdown started
    GREEN = 0x1F5E2E    # Lockdown lifted
    ORANGE = 0xFFA500   # Spam warnings
    BLUE = 0x3498DB     # Status reports

    ALERT = RED
    SUCCESS = GREEN
    WARNING = ORANGE
    INFO = BLUE


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """
    Raised when required configuration is missing or invalid.

    Custom exception type allows callers to distinguish config
    errors from other startup failures.
    """

    pass


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    """
    Parse optional string to integer, returning None on failure.

    Args:
        value: String value from environment variable, may be None.

    Returns:
        Parsed integer or None if parsing fails.
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Args:
        value: Comma-separated string of integers (e.g., "123,456,789").

    Returns:
        Set of parsed integers, empty set if input is None or empty.
    """
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if part:
            try:
                result.add(int(part))
            except ValueError:
                pass  # Skip invalid entries
    return result


def _parse_number_with_default(
    value: Optional[str],
    default: float,
    name: str,
    min_val: float = None,
    max_val: float = None,
    cast: type = int,
):
    """
    Parse optional number with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).
        cast: int or float.

    Returns:
        Parsed number within valid range, or default.
    """
    from raidshield.core.logger import logger

    if not value:
        return default
    try:
        parsed = cast(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return cast(min_val)
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return cast(max_val)
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """
    Validate URL format for webhooks.

    Returns:
        URL if valid, None if invalid or empty.
    """
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from raidshield.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigValidationError: If any required variable is missing.
    """
    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        raise ConfigValidationError("Missing required environment variables: DISCORD_TOKEN")

    lockdown_exclude_ids = _parse_int_set(os.getenv("LOCKDOWN_EXCLUDE_IDS"))

    return Config(
        discord_token=discord_token,
        developer_id=_parse_int_optional(os.getenv("DEVELOPER_ID")),
        moderation_role_id=_parse_int_optional(os.getenv("MODERATION_ROLE_ID")),
        alert_channel_id=_parse_int_optional(os.getenv("ALERT_CHANNEL_ID")),
        lockdown_exclude_ids=lockdown_exclude_ids if lockdown_exclude_ids else None,
        rules_file=os.getenv("RULES_FILE", "rules.json"),
        spam_cooldown_seconds=_parse_number_with_default(
            os.getenv("SPAM_COOLDOWN_SECONDS"), SPAM_COOLDOWN_SECONDS,
            "SPAM_COOLDOWN_SECONDS", min_val=1, max_val=3600,
        ),
        raid_debounce_seconds=_parse_number_with_default(
            os.getenv("RAID_DEBOUNCE_SECONDS"), RAID_DEBOUNCE_DELAY,
            "RAID_DEBOUNCE_SECONDS", min_val=0, max_val=60, cast=float,
        ),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Returns:
        The global Config instance.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> None:
    """
    Validate configuration and log a summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from raidshield.core.logger import logger

    config = get_config()

    logger.tree("Configuration Validated", [
        ("Rules File", config.rules_file),
        ("Alert Channel", str(config.alert_channel_id) if config.alert_channel_id else "system channel"),
        ("Spam Cooldown", f"{config.spam_cooldown_seconds}s"),
        ("Raid Debounce", f"{config.raid_debounce_seconds}s"),
        ("Lockdown Exclusions", str(len(config.lockdown_exclude_ids or ()))),
    ], emoji="⚙️")


# =============================================================================
# Permission Helpers
# =============================================================================

def has_mod_role(member, config: Optional[Config] = None) -> bool:
    """
    Check if a member may run operator commands.

    Args:
        member: Discord member object to check.
        config: Config to check against (defaults to the global one).

    Returns:
        True if member is developer, administrator, or has the mod role.
    """
    if member is None:
        return False

    config = config or get_config()

    if config.developer_id and member.id == config.developer_id:
        return True

    if member.guild_permissions.administrator:
        return True

    if config.moderation_role_id:
        for role in member.roles:
            if role.id == config.moderation_role_id:
                return True

    return False


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "load_config",
    "validate_and_log_config",
    "has_mod_role",
]
