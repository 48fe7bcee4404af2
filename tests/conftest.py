"""
RaidShield - Test Fixtures
==========================

Shared fixtures for all tests.

Discord objects are small fakes built on real discord.py permission
types, so permission math is exercised for real while every API call is
an AsyncMock.
"""

import os
import tempfile
from datetime import datetime, timezone
from itertools import count
from unittest.mock import AsyncMock, MagicMock

import pytest

# Keep log files out of the working tree
os.environ.setdefault("RAIDSHIELD_LOG_DIR", tempfile.mkdtemp(prefix="raidshield-logs-"))

import discord  # noqa: E402

from raidshield.core.rules import RaidKind, RaidRule, ServerRules, SpamRule, StaticRuleProvider  # noqa: E402
from raidshield.services.audit import AuditLog  # noqa: E402
from raidshield.utils.cache import EventCache  # noqa: E402


GUILD_ID = 987654321
BOT_ID = 999888777
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# Typical @everyone permissions before any lockdown
MEMBER_PERMISSIONS = discord.Permissions(
    discord.Permissions.general().value
    | discord.Permissions.text().value
    | discord.Permissions.voice().value
)

_ids = count(1000)


def http_error(cls=discord.HTTPException, status: int = 500, text: str = "error"):
    """Build a real discord.py HTTP exception."""
    response = MagicMock()
    response.status = status
    response.reason = "Error"
    return cls(response, text)


# =============================================================================
# Fake Clock
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fake Discord Objects
# =============================================================================

class FakeRole:
    """Role whose edit() really updates its permissions."""

    def __init__(self, permissions: discord.Permissions, role_id: int = GUILD_ID) -> None:
        self.id = role_id
        self.name = "@everyone"
        self.permissions = permissions
        self.edit = AsyncMock(side_effect=self._edit)

    async def _edit(self, *, permissions=None, reason=None) -> None:
        if permissions is not None:
            self.permissions = permissions


class FakeMember:
    def __init__(self, member_id: int, guild=None, bot: bool = False) -> None:
        self.id = member_id
        self.name = f"user{member_id}"
        self.bot = bot
        self.guild = guild
        self.mention = f"<@{member_id}>"
        self.roles = []
        self.guild_permissions = discord.Permissions.none()

    def __str__(self) -> str:
        return self.name


class FakeMessage:
    def __init__(self, channel, author, created_at: datetime, message_id: int = None) -> None:
        self.id = message_id if message_id is not None else next(_ids)
        self.channel = channel
        self.guild = channel.guild
        self.author = author
        self.created_at = created_at
        self.webhook_id = None
        self.delete = AsyncMock()


class FakeTextChannel:
    """Text channel with real overwrite storage and newest-first history."""

    def __init__(self, guild, channel_id: int = None, name: str = None) -> None:
        self.id = channel_id if channel_id is not None else next(_ids)
        self.name = name or f"channel-{self.id}"
        self.guild = guild
        self.permissions = discord.Permissions.all()
        self.messages = []
        self._overwrites = {}
        self.set_permissions = AsyncMock(side_effect=self._set_permissions)
        self.send = AsyncMock()
        self.delete = AsyncMock()
        self.delete_messages = AsyncMock()

    def permissions_for(self, member) -> discord.Permissions:
        return self.permissions

    def overwrites_for(self, target) -> discord.PermissionOverwrite:
        stored = self._overwrites.get(target.id, discord.PermissionOverwrite())
        return discord.PermissionOverwrite.from_pair(*stored.pair())

    def set_overwrite(self, target, overwrite: discord.PermissionOverwrite) -> None:
        self._overwrites[target.id] = overwrite

    def has_overwrite(self, target) -> bool:
        return target.id in self._overwrites

    async def _set_permissions(self, target, *, overwrite=None, reason=None) -> None:
        if overwrite is None:
            self._overwrites.pop(target.id, None)
        else:
            self._overwrites[target.id] = discord.PermissionOverwrite.from_pair(*overwrite.pair())

    def history(self, limit: int = 100, before=None):
        async def pages():
            yielded = 0
            for message in self.messages:
                if before is not None and message.id >= before.id:
                    continue
                if yielded >= limit:
                    break
                yielded += 1
                yield message
        return pages()


class FakeGuild:
    """Guild with an @everyone role, a bot member and some text channels."""

    def __init__(
        self,
        guild_id: int = GUILD_ID,
        bot_permissions: discord.Permissions = None,
        everyone_permissions: discord.Permissions = None,
        channel_count: int = 3,
    ) -> None:
        self.id = guild_id
        self.name = "Test Server"
        self.default_role = FakeRole(everyone_permissions or MEMBER_PERMISSIONS, guild_id)
        self.me = FakeMember(BOT_ID, guild=self, bot=True)
        self.me.guild_permissions = bot_permissions or discord.Permissions(
            manage_roles=True,
            manage_channels=True,
            send_messages=True,
            manage_messages=True,
        )
        self.text_channels = [FakeTextChannel(self) for _ in range(channel_count)]
        self.extra_channels = {}
        self.system_channel = self.text_channels[0] if self.text_channels else None

    def get_channel(self, channel_id: int):
        for channel in self.text_channels:
            if channel.id == channel_id:
                return channel
        return self.extra_channels.get(channel_id)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return EventCache(clock=clock)


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def guild():
    return FakeGuild()


@pytest.fixture
def rules():
    """Rules for the test guild: 3 messages / 5s, 5 joins / 10s -> 10 min."""
    provider = StaticRuleProvider()
    provider.set_rules(ServerRules(
        guild_id=GUILD_ID,
        spam=[SpamRule(message_count=3, time_window=5)],
        raids=[
            RaidRule(RaidKind.JOIN, threshold=5, time_window=10, lockdown_duration=10),
            RaidRule(RaidKind.CHANNEL, threshold=3, time_window=10, lockdown_duration=5),
            RaidRule(RaidKind.ROLE, threshold=3, time_window=10, lockdown_duration=5),
        ],
    ))
    return provider
