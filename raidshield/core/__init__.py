"""
RaidShield - Core Package
=========================

Configuration, constants and logging shared by every other package.

DESIGN:
    Core modules are designed as singletons or global instances
    to ensure consistent state across the application:
    - get_config() returns the same Config instance
    - logger is a global TreeLogger instance

    Detection rules live in raidshield.core.rules and are imported from
    there directly (rules depend on the utils package).
"""

# =============================================================================
# Core Imports
# =============================================================================

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    get_config,
    has_mod_role,
    load_config,
)

from .logger import logger, TreeLogger, LOG_TZ


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "has_mod_role",
    "load_config",
    # Logger
    "logger",
    "TreeLogger",
    "LOG_TZ",
]
