"""
RaidShield - Spam Detector Tests
================================

Tests for per-user flood detection, cooldown suppression and the
warning embed.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from raidshield.core.rules import ServerRules, SpamRule, StaticRuleProvider
from raidshield.services.antispam import OUTCOME_SPAM, OUTCOME_SUPPRESSED, SpamDetector
from raidshield.services.audit import IncidentType
from raidshield.services.cooldowns import CooldownRegister
from raidshield.services.rate_counter import RateCounter, user_key
from raidshield.services.remediation import PurgeResult

from conftest import GUILD_ID, NOW, FakeMember, FakeMessage


@pytest.fixture
def purger():
    mock = MagicMock()
    mock.purge = AsyncMock(return_value=PurgeResult(matched=2, deleted=2, trigger_deleted=True))
    mock.delete_message = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def detector(cache, rules, purger, audit, clock):
    cooldowns = CooldownRegister(clock=clock)
    return SpamDetector(RateCounter(cache), rules, cooldowns, purger, audit, clock=clock)


def _message(guild, author, created_at=NOW):
    return FakeMessage(guild.text_channels[0], author, created_at)


class TestSpamDetector:
    """Tests for SpamDetector.handle_message."""

    @pytest.mark.asyncio
    async def test_third_message_in_window_is_spam(self, detector, guild, purger, audit, clock):
        """3 messages at t=0, 1, 2 with a 3-in-5s rule: the third purges."""
        author = FakeMember(1, guild)

        assert await detector.handle_message(_message(guild, author)) is None
        clock.advance(1)
        assert await detector.handle_message(_message(guild, author)) is None
        clock.advance(1)
        third = _message(guild, author)
        outcome = await detector.handle_message(third)

        assert outcome == OUTCOME_SPAM
        purger.purge.assert_awaited_once_with(third, window_seconds=5)
        assert detector.cooldowns.is_active(user_key(GUILD_ID, 1))
        assert detector.counter.count("recent-messages", user_key(GUILD_ID, 1), 5) == 0

        incidents = audit.history(incident_type=IncidentType.SPAM_DETECTED)
        assert len(incidents) == 1
        assert incidents[0].details["user_id"] == 1
        assert incidents[0].details["deleted"] == 3
        detector.cooldowns.clear_all()

    @pytest.mark.asyncio
    async def test_slow_messages_never_trigger(self, detector, guild, purger, clock):
        author = FakeMember(1, guild)
        for _ in range(10):
            assert await detector.handle_message(_message(guild, author)) is None
            clock.advance(3)
        purger.purge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cooled_down_author_messages_are_deleted(self, detector, guild, purger, clock):
        author = FakeMember(1, guild)
        for _ in range(3):
            await detector.handle_message(_message(guild, author))

        clock.advance(10)
        follow_up = _message(guild, author)
        outcome = await detector.handle_message(follow_up)

        assert outcome == OUTCOME_SUPPRESSED
        purger.delete_message.assert_awaited_once_with(follow_up)
        assert purger.purge.await_count == 1
        detector.cooldowns.clear_all()

    @pytest.mark.asyncio
    async def test_cooldown_expiry_restores_normal_counting(self, detector, guild, purger, clock):
        author = FakeMember(1, guild)
        for _ in range(3):
            await detector.handle_message(_message(guild, author))

        clock.advance(detector.cooldown_seconds + 1)

        assert await detector.handle_message(_message(guild, author)) is None
        purger.delete_message.assert_not_awaited()
        detector.cooldowns.clear_all()

    @pytest.mark.asyncio
    async def test_users_are_counted_separately(self, detector, guild, purger):
        for user_id in (1, 2, 3):
            author = FakeMember(user_id, guild)
            await detector.handle_message(_message(guild, author))
            await detector.handle_message(_message(guild, author))
        purger.purge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_warning_embed_is_sent(self, detector, guild):
        author = FakeMember(1, guild)
        for _ in range(3):
            await detector.handle_message(_message(guild, author))

        channel = guild.text_channels[0]
        channel.send.assert_awaited_once()
        embed = channel.send.await_args.kwargs["embed"]
        assert isinstance(embed, discord.Embed)
        assert "SPAM" in embed.title
        assert channel.send.await_args.kwargs["delete_after"] > 0
        detector.cooldowns.clear_all()


class TestSpamExemptions:
    """Messages the detector never counts."""

    @pytest.mark.asyncio
    async def test_bots_and_webhooks_are_ignored(self, detector, guild, purger):
        bot = FakeMember(5, guild, bot=True)
        human = FakeMember(6, guild)
        for _ in range(5):
            await detector.handle_message(_message(guild, bot))
            hooked = _message(guild, human)
            hooked.webhook_id = 1234
            await detector.handle_message(hooked)
        purger.purge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_messages_are_ignored(self, detector, guild):
        message = _message(guild, FakeMember(1, guild))
        message.guild = None
        assert await detector.handle_message(message) is None

    @pytest.mark.asyncio
    async def test_guild_without_rule_is_skipped(self, cache, purger, audit, guild):
        detector = SpamDetector(
            RateCounter(cache), StaticRuleProvider(), CooldownRegister(), purger, audit,
        )
        author = FakeMember(1, guild)
        for _ in range(10):
            assert await detector.handle_message(_message(guild, author)) is None
        assert cache.size("recent-messages") == 0

    @pytest.mark.asyncio
    async def test_invalid_rule_is_skipped(self, cache, purger, audit, guild):
        provider = StaticRuleProvider()
        provider.set_rules(ServerRules(guild_id=GUILD_ID, spam=[SpamRule(message_count=0, time_window=5)]))
        detector = SpamDetector(RateCounter(cache), provider, CooldownRegister(), purger, audit)

        assert await detector.handle_message(_message(guild, FakeMember(1, guild))) is None
        purger.purge.assert_not_awaited()
