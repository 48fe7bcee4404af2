"""
RaidShield - Discord HTTP Error Logging
=======================================

Uniform logging for failed Discord API calls.

Usage:
    from raidshield.utils.discord_rate_limit import log_http_error

    try:
        await channel.set_permissions(role, overwrite=overwrite)
    except discord.HTTPException as e:
        log_http_error(e, "Channel Lock", [("Channel", f"#{channel.name}")])
"""

from typing import Optional

import discord

from raidshield.core.logger import logger


# HTTP status code descriptions for logging
HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


# =============================================================================
# Logging Helper
# =============================================================================

def describe_http_error(e: discord.HTTPException) -> str:
    """Short "status (description)" label for an HTTPException."""
    status = getattr(e, "status", None)
    return f"{status} ({HTTP_STATUS_DESCRIPTIONS.get(status, 'Unknown')})"


def log_http_error(
    e: discord.HTTPException,
    operation: str,
    context: Optional[list] = None,
) -> None:
    """
    Log a Discord HTTPException with comprehensive details.

    Rate limits, missing permissions and missing targets are recoverable
    and logged as warnings; everything else is an error.

    Args:
        e: The HTTPException that occurred
        operation: Description of what operation failed
        context: Additional context tuples for logging [(key, value), ...]
    """
    status = getattr(e, "status", None)
    retry_after = getattr(e, "retry_after", None)
    text = getattr(e, "text", None)

    log_items = [
        ("Status", describe_http_error(e)),
        ("Error", (str(text) if text else str(e))[:100]),
    ]

    if retry_after:
        log_items.append(("Retry After", f"{retry_after:.1f}s"))

    if context:
        log_items.extend(context)

    if status == 429:
        logger.warning(f"🚦 {operation} Rate Limited", log_items)
    elif status == 403:
        logger.warning(f"🚫 {operation} Forbidden", log_items)
    elif status == 404:
        logger.warning(f"❓ {operation} Not Found", log_items)
    else:
        logger.error(f"❌ {operation} Failed", log_items)


__all__ = [
    "HTTP_STATUS_DESCRIPTIONS",
    "describe_http_error",
    "log_http_error",
]
