"""
RaidShield - Raid Detector Tests
================================

Tests for join, channel and role burst detection and the raid channel
registry.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from raidshield.core.rules import RaidKind, RaidRule, ServerRules, StaticRuleProvider
from raidshield.services.audit import IncidentType
from raidshield.services.cooldowns import Debouncer
from raidshield.services.raid_detection import (
    ChannelRaidDetector,
    JoinRaidDetector,
    RaidChannelRegistry,
    RoleRaidDetector,
)
from raidshield.services.rate_counter import RateCounter

from conftest import GUILD_ID, FakeMember


DEBOUNCE = 0.02


@pytest.fixture
def lockdown():
    mock = MagicMock()
    mock.apply_lockdown = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def registry(cache):
    return RaidChannelRegistry(cache)


@pytest.fixture
def deps(cache, rules, lockdown, audit):
    return (RateCounter(cache), rules, lockdown, Debouncer(DEBOUNCE), audit)


# =============================================================================
# Join Raids
# =============================================================================

class TestJoinRaidDetector:
    """Tests for member join bursts (5 joins / 10s -> 10 minute lockdown)."""

    @pytest.mark.asyncio
    async def test_fifth_join_triggers_lockdown(self, deps, guild, lockdown, audit, clock):
        detector = JoinRaidDetector(*deps, clock=clock)

        results = []
        for i in range(5):
            results.append(await detector.handle_member_join(FakeMember(100 + i, guild)))
            clock.advance(1)

        assert results == [False, False, False, False, True]
        await asyncio.sleep(DEBOUNCE * 4)

        lockdown.apply_lockdown.assert_awaited_once_with(guild, 10, RaidKind.JOIN)
        raids = audit.history(incident_type=IncidentType.RAID_DETECTED)
        assert len(raids) == 1
        assert raids[0].details["raid_kind"] == "join"

    @pytest.mark.asyncio
    async def test_repeated_breaches_collapse_into_one_lockdown(self, deps, guild, lockdown, clock):
        detector = JoinRaidDetector(*deps, clock=clock)

        # 20 joins in quick succession breach the rule four times
        for i in range(20):
            await detector.handle_member_join(FakeMember(100 + i, guild))
            clock.advance(0.1)

        await asyncio.sleep(DEBOUNCE * 4)

        lockdown.apply_lockdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_spread_out_joins_do_not_trigger(self, deps, guild, lockdown, clock):
        detector = JoinRaidDetector(*deps, clock=clock)

        for i in range(20):
            assert await detector.handle_member_join(FakeMember(100 + i, guild)) is False
            clock.advance(3)

        lockdown.apply_lockdown.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_rule_is_skipped(self, cache, lockdown, audit, guild, clock):
        provider = StaticRuleProvider()
        provider.set_rules(ServerRules(guild_id=GUILD_ID, raids=[
            RaidRule(RaidKind.JOIN, threshold=1, time_window=10, lockdown_duration=5000),
        ]))
        detector = JoinRaidDetector(RateCounter(cache), provider, lockdown, Debouncer(DEBOUNCE), audit)

        assert await detector.handle_member_join(FakeMember(1, guild)) is False
        assert cache.size("recent-joins") == 0

    @pytest.mark.asyncio
    async def test_guild_without_rules_is_skipped(self, cache, lockdown, audit, guild):
        detector = JoinRaidDetector(
            RateCounter(cache), StaticRuleProvider(), lockdown, Debouncer(DEBOUNCE), audit,
        )
        for i in range(10):
            assert await detector.handle_member_join(FakeMember(i, guild)) is False


# =============================================================================
# Channel Raids
# =============================================================================

class TestChannelRaidDetector:
    """Tests for channel creation bursts (3 channels / 10s -> 5 minutes)."""

    @pytest.mark.asyncio
    async def test_created_channels_are_tracked(self, deps, registry, guild, lockdown, clock):
        detector = ChannelRaidDetector(*deps, registry=registry, clock=clock)

        for channel_id in (11, 12, 13):
            await detector.handle_channel_create(SimpleNamespace(id=channel_id, guild=guild))

        assert registry.channel_ids(GUILD_ID) == [11, 12, 13]
        await asyncio.sleep(DEBOUNCE * 4)
        lockdown.apply_lockdown.assert_awaited_once_with(guild, 5, RaidKind.CHANNEL)

    @pytest.mark.asyncio
    async def test_deleted_channel_is_untracked(self, deps, registry, guild, clock):
        detector = ChannelRaidDetector(*deps, registry=registry, clock=clock)
        await detector.handle_channel_create(SimpleNamespace(id=11, guild=guild))
        await detector.handle_channel_create(SimpleNamespace(id=12, guild=guild))

        await detector.handle_channel_delete(SimpleNamespace(id=11, guild=guild))

        assert registry.channel_ids(GUILD_ID) == [12]

    @pytest.mark.asyncio
    async def test_guild_without_channel_rule_tracks_nothing(self, cache, registry, lockdown, audit, guild):
        provider = StaticRuleProvider()
        provider.set_rules(ServerRules(guild_id=GUILD_ID, raids=[
            RaidRule(RaidKind.JOIN, threshold=5, time_window=10, lockdown_duration=10),
        ]))
        detector = ChannelRaidDetector(
            RateCounter(cache), provider, lockdown, Debouncer(DEBOUNCE), audit, registry=registry,
        )

        for channel_id in (11, 12, 13, 14):
            assert await detector.handle_channel_create(SimpleNamespace(id=channel_id, guild=guild)) is False

        assert registry.channel_ids(GUILD_ID) == []
        assert cache.size("recent-channels") == 0


class TestRoleRaidDetector:
    """Tests for role creation bursts."""

    @pytest.mark.asyncio
    async def test_role_burst_triggers_role_lockdown(self, deps, guild, lockdown, clock):
        detector = RoleRaidDetector(*deps, clock=clock)

        for role_id in (21, 22, 23):
            await detector.handle_role_create(SimpleNamespace(id=role_id, guild=guild))

        await asyncio.sleep(DEBOUNCE * 4)
        lockdown.apply_lockdown.assert_awaited_once_with(guild, 5, RaidKind.ROLE)

    @pytest.mark.asyncio
    async def test_kinds_are_counted_separately(self, deps, guild, lockdown, clock):
        joins = JoinRaidDetector(*deps, clock=clock)
        roles = RoleRaidDetector(*deps, clock=clock)

        await roles.handle_role_create(SimpleNamespace(id=1, guild=guild))
        await roles.handle_role_create(SimpleNamespace(id=2, guild=guild))
        for i in range(4):
            await joins.handle_member_join(FakeMember(i, guild))

        await asyncio.sleep(DEBOUNCE * 4)
        lockdown.apply_lockdown.assert_not_awaited()


# =============================================================================
# Registry
# =============================================================================

class TestRaidChannelRegistry:
    """Tests for RaidChannelRegistry."""

    def test_add_is_deduplicated(self, registry):
        registry.add(1, 10)
        registry.add(1, 10)
        registry.add(2, 10)
        assert registry.channel_ids(1) == [10]
        assert registry.channel_ids(2) == [10]

    def test_clear_only_affects_one_guild(self, registry):
        registry.add(1, 10)
        registry.add(2, 20)
        registry.clear(1)
        assert registry.channel_ids(1) == []
        assert registry.channel_ids(2) == [20]
