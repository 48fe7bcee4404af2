#!/usr/bin/env python3
"""
RaidShield - Entry Point
========================

Starts the RaidShield Discord bot.

Handles the complete bot lifecycle:
1. Loads .env into the environment
2. Validates configuration (DISCORD_TOKEN is required)
3. Creates the bot with every service composed
4. Connects to Discord until interrupted
"""

import asyncio
import sys

from dotenv import load_dotenv

from raidshield.core.config import ConfigValidationError, get_config, validate_and_log_config
from raidshield.core.logger import logger


async def main() -> None:
    """
    Main entry point for RaidShield.

    Raises:
        SystemExit: If configuration is invalid or the bot fails to start.
    """
    load_dotenv()

    logger.tree("RAIDSHIELD STARTING", [
        ("Run ID", logger.run_id),
    ], emoji="🛡️")

    try:
        validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Configuration Invalid", [("Error", str(e))])
        sys.exit(1)

    from raidshield.bot import GuardBot

    config = get_config()
    bot = GuardBot(config)

    try:
        async with bot:
            await bot.start(config.discord_token)
    except Exception as e:
        logger.error("Bot Crashed", [
            ("Location", "main.main"),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:200]),
        ])
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
