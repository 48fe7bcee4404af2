"""
RaidShield - Detection Rule Tests
=================================

Tests for rule parsing, validation and the rule providers.
"""

import json

import pytest

from raidshield.core.rules import (
    CachedRuleProvider,
    JsonRuleProvider,
    RaidKind,
    RaidRule,
    ServerRules,
    SpamRule,
    StaticRuleProvider,
    max_time_window,
)
from raidshield.services.rate_counter import RateCounter
from raidshield.utils.cache import CacheSweeper, EventCache


DOCUMENT = {
    "automodRules": {
        "Spam": [{"messageCount": 3, "timeWindow": 5, "title": "flood"}],
        "Raids": [
            {"raidType": "join", "joinCount": 5, "timeWindow": 10, "lockdownDuration": 10},
            {"raidType": "Channel", "channelCount": 3, "timeWindow": 10, "lockdownDuration": 5},
            {"raidType": "role", "roleCount": 4, "timeWindow": 20, "lockdownDuration": 15},
        ],
    }
}


# =============================================================================
# Parsing
# =============================================================================

class TestServerRules:
    """Tests for ServerRules.from_dict."""

    def test_parses_store_document(self):
        rules = ServerRules.from_dict(1, DOCUMENT)

        spam = rules.spam_rule()
        assert spam == SpamRule(message_count=3, time_window=5, title="flood")

        join = rules.raid_rule(RaidKind.JOIN)
        assert join.threshold == 5
        assert join.lockdown_duration == 10

        channel = rules.raid_rule(RaidKind.CHANNEL)
        assert channel.threshold == 3

        role = rules.raid_rule(RaidKind.ROLE)
        assert role.threshold == 4
        assert role.time_window == 20

    def test_missing_sections_give_no_rules(self):
        rules = ServerRules.from_dict(1, {})
        assert rules.spam_rule() is None
        assert rules.raid_rule(RaidKind.JOIN) is None

    def test_bad_entries_are_skipped(self):
        rules = ServerRules.from_dict(1, {
            "automodRules": {
                "Spam": [{"messageCount": "lots"}],
                "Raids": [
                    {"raidType": "meteor", "count": 1, "timeWindow": 1, "lockdownDuration": 1},
                    {"raidType": "join", "timeWindow": 10},
                    {"raidType": "role", "roleCount": 2, "timeWindow": 10, "lockdownDuration": 3},
                ],
            }
        })

        assert rules.spam == []
        assert [r.raid_kind for r in rules.raids] == [RaidKind.ROLE]


class TestRuleValidation:
    """Tests for out-of-range rules."""

    @pytest.mark.parametrize("count,window,valid", [
        (3, 5, True),
        (0, 5, False),
        (3, 0, False),
        (101, 5, False),
        (3, 300, True),
        (3, 301, False),
        (3, 3600, False),
    ])
    def test_spam_rule(self, count, window, valid):
        assert SpamRule(message_count=count, time_window=window).is_valid() is valid

    @pytest.mark.parametrize("duration,valid", [
        (1, True),
        (1440, True),
        (0, False),
        (1441, False),
    ])
    def test_raid_rule_duration_bounds(self, duration, valid):
        rule = RaidRule(RaidKind.JOIN, threshold=5, time_window=10, lockdown_duration=duration)
        assert rule.is_valid() is valid

    @pytest.mark.parametrize("kind,window,valid", [
        (RaidKind.JOIN, 600, True),
        (RaidKind.JOIN, 601, False),
        (RaidKind.CHANNEL, 900, True),
        (RaidKind.ROLE, 901, False),
    ])
    def test_raid_rule_window_bounded_by_retention(self, kind, window, valid):
        rule = RaidRule(kind, threshold=5, time_window=window, lockdown_duration=10)
        assert rule.is_valid() is valid

    def test_longest_valid_window_survives_periodic_sweep(self):
        """Events inside the longest valid window outlive a sweep."""
        window = max_time_window("recent-messages")
        rule = SpamRule(message_count=3, time_window=window)
        assert rule.is_valid()

        clock = [0.0]
        cache = EventCache(clock=lambda: clock[0])
        counter = RateCounter(cache)
        sweeper = CacheSweeper(cache)

        counter.observe("recent-messages", "k", rule.time_window, rule.message_count, now=0.0)
        counter.observe("recent-messages", "k", rule.time_window, rule.message_count, now=window - 50.0)
        clock[0] = window - 1.0
        sweeper.run_once("recent-messages")

        result = counter.observe(
            "recent-messages", "k", rule.time_window, rule.message_count, now=window - 1.0,
        )
        assert result.count == 3
        assert result.exceeded

    def test_raid_kind_parse(self):
        assert RaidKind.parse("JOIN") is RaidKind.JOIN
        assert RaidKind.parse(RaidKind.ROLE) is RaidKind.ROLE
        assert RaidKind.parse("meteor") is None
        assert RaidKind.parse(None) is None


# =============================================================================
# Providers
# =============================================================================

class TestRuleProviders:
    """Tests for the JSON, static and cached providers."""

    @pytest.mark.asyncio
    async def test_json_provider_reads_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"42": DOCUMENT, "not-a-guild": DOCUMENT}), encoding="utf-8")
        provider = JsonRuleProvider(path)

        rules = await provider.get_rules(42)

        assert rules.raid_rule(RaidKind.JOIN).threshold == 5
        assert await provider.get_rules(7) is None

    @pytest.mark.asyncio
    async def test_json_provider_missing_file(self, tmp_path):
        provider = JsonRuleProvider(tmp_path / "missing.json")
        assert await provider.get_rules(42) is None
        assert provider.reload() == 0

    @pytest.mark.asyncio
    async def test_json_provider_invalid_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json", encoding="utf-8")
        provider = JsonRuleProvider(path)
        assert await provider.get_rules(42) is None

    @pytest.mark.asyncio
    async def test_json_provider_top_level_not_an_object(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        provider = JsonRuleProvider(path)

        assert await provider.get_rules(42) is None
        assert provider.reload() == 0

    @pytest.mark.asyncio
    async def test_json_provider_skips_malformed_documents(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "42": DOCUMENT,
            "43": [1, 2],
            "44": {"automodRules": "off"},
        }), encoding="utf-8")
        provider = JsonRuleProvider(path)

        assert (await provider.get_rules(42)).spam_rule().message_count == 3
        assert await provider.get_rules(43) is None
        empty = await provider.get_rules(44)
        assert empty.spam == [] and empty.raids == []

    @pytest.mark.asyncio
    async def test_cached_provider_reuses_rules_until_invalidated(self):
        inner = StaticRuleProvider()
        inner.set_rules(ServerRules.from_dict(1, DOCUMENT))
        cached = CachedRuleProvider(inner)

        first = await cached.get_rules(1)
        inner.set_rules(ServerRules(guild_id=1))
        assert await cached.get_rules(1) is first

        cached.invalidate(1)
        assert (await cached.get_rules(1)).spam_rule() is None

    @pytest.mark.asyncio
    async def test_cached_provider_does_not_cache_misses(self):
        inner = StaticRuleProvider()
        cached = CachedRuleProvider(inner)

        assert await cached.get_rules(1) is None
        inner.set_rules(ServerRules(guild_id=1))
        assert await cached.get_rules(1) is not None
