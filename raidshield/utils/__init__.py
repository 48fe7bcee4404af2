"""
RaidShield - Utils Package
==========================

Helper modules with no knowledge of detectors or lockdowns.

DESIGN:
    Utils are helper functions and classes usable anywhere in the
    codebase. The event cache holds state, but that state is owned by
    whoever creates the cache, never by this package.

Available Utilities:
    EventCache / CacheSweeper: Namespaced timestamped event store
    TTLCache: Single-value cache with expiry
    create_safe_task / gather_with_logging: Async helpers with logging
    log_http_error: Discord HTTP error classification
"""

# =============================================================================
# Utility Imports
# =============================================================================

from .async_utils import create_safe_task, gather_with_logging, run_bounded
from .cache import CacheSweeper, EventCache, TimestampedEvent, TTLCache
from .discord_rate_limit import log_http_error


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Async
    "create_safe_task",
    "gather_with_logging",
    "run_bounded",
    # Cache
    "CacheSweeper",
    "EventCache",
    "TimestampedEvent",
    "TTLCache",
    # Discord
    "log_http_error",
]
