"""
RaidShield - Main Bot Class
===========================

Discord client that composes every RaidShield service once per process.

DESIGN:
    All per-process state (event cache, cooldowns, lockdown records) is
    created here and injected into the services that use it; no module
    holds global detector state.

    SERVICE INITIALIZATION ORDER:
    1. __init__:
       - Event cache, rate counter, cooldown register, debouncer
       - Rule provider (JSON export of the config store, TTL-cached)
       - Audit log, raid channel registry, lockdown service
       - Spam and raid detectors
    2. setup_hook (event loop running):
       - Cache sweeper tasks
       - Command and event cog loading
       - Command tree syncing
"""

from datetime import datetime
from typing import Optional

import discord
from discord.ext import commands

from raidshield.core.config import Config, get_config
from raidshield.core.logger import logger
from raidshield.core.rules import CachedRuleProvider, JsonRuleProvider, RuleProvider
from raidshield.services.antispam import SpamDetector
from raidshield.services.audit import AuditLog
from raidshield.services.cooldowns import CooldownRegister, Debouncer
from raidshield.services.raid_detection import (
    ChannelRaidDetector,
    JoinRaidDetector,
    RaidChannelRegistry,
    RoleRaidDetector,
)
from raidshield.services.raid_lockdown import LockdownService
from raidshield.services.rate_counter import RateCounter
from raidshield.services.remediation import MessagePurger
from raidshield.utils.cache import CacheSweeper, EventCache


# =============================================================================
# GuardBot Class
# =============================================================================

class GuardBot(commands.Bot):
    """
    Main Discord bot class for RaidShield.

    DESIGN: Central orchestrator that:
    - Holds references to all services
    - Routes Discord events to detectors (via the guard events cog)
    - Manages lifecycle (startup, shutdown)
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(
        self,
        config: Optional[Config] = None,
        rules: Optional[RuleProvider] = None,
    ) -> None:
        """Create the client and every service it owns."""
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now()
        self._ready_initialized: bool = False

        # Shared state
        self.cache = EventCache()
        self.sweeper = CacheSweeper(self.cache)
        self.counter = RateCounter(self.cache)
        self.cooldowns = CooldownRegister()
        self.debouncer = Debouncer(self.config.raid_debounce_seconds)
        self.rules: RuleProvider = rules or CachedRuleProvider(JsonRuleProvider(self.config.rules_file))
        self.audit = AuditLog()
        self.registry = RaidChannelRegistry(self.cache)

        # Lockdown state machine
        self.lockdown = LockdownService(
            self.registry,
            self.audit,
            alert_channel_id=self.config.alert_channel_id,
            exclude_channel_ids=self.config.lockdown_exclude_ids or (),
        )

        # Detectors
        self.spam_detector = SpamDetector(
            self.counter,
            self.rules,
            self.cooldowns,
            MessagePurger(),
            self.audit,
            cooldown_seconds=self.config.spam_cooldown_seconds,
        )
        raid_deps = (self.counter, self.rules, self.lockdown, self.debouncer, self.audit)
        self.join_detector = JoinRaidDetector(*raid_deps)
        self.channel_detector = ChannelRaidDetector(*raid_deps, registry=self.registry)
        self.role_detector = RoleRaidDetector(*raid_deps)

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Start background tasks, load cogs and sync commands before on_ready."""
        self.sweeper.start()

        from raidshield.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        from raidshield.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        try:
            synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        logger.tree("RAIDSHIELD ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
            ("Cache Sweeper", "Running" if self.sweeper.running else "Stopped"),
            ("Raid Debounce", f"{self.debouncer.delay}s"),
        ], emoji="🛡️")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        self.sweeper.stop()
        self.debouncer.cancel_all()
        self.cooldowns.clear_all()
        self.lockdown.shutdown()

        active = self.lockdown.active_records()
        if active:
            logger.warning("Shutting Down During Lockdown", [
                ("Guilds", ", ".join(str(r.guild_id) for r in active)),
                ("Action", "Lockdown state is not persisted; restore permissions manually"),
            ])

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["GuardBot"]
