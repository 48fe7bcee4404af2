"""
RaidShield - Configuration & Audit Tests
========================================

Tests for environment configuration loading and the incident audit log.
"""

from unittest.mock import AsyncMock

import pytest

from raidshield.core.config import ConfigValidationError, load_config
from raidshield.core.constants import RAID_DEBOUNCE_DELAY, SPAM_COOLDOWN_SECONDS
from raidshield.services.audit import AuditLog, IncidentType


ENV_VARS = (
    "DISCORD_TOKEN", "DEVELOPER_ID", "MODERATION_ROLE_ID", "ALERT_CHANNEL_ID",
    "LOCKDOWN_EXCLUDE_IDS", "RULES_FILE", "SPAM_COOLDOWN_SECONDS",
    "RAID_DEBOUNCE_SECONDS", "ERROR_WEBHOOK_URL",
)


@pytest.fixture
def env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    return monkeypatch


# =============================================================================
# Config Loading
# =============================================================================

class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_token_raises(self, env):
        env.delenv("DISCORD_TOKEN")
        with pytest.raises(ConfigValidationError):
            load_config()

    def test_defaults(self, env):
        config = load_config()
        assert config.discord_token == "token"
        assert config.alert_channel_id is None
        assert config.lockdown_exclude_ids is None
        assert config.spam_cooldown_seconds == SPAM_COOLDOWN_SECONDS
        assert config.raid_debounce_seconds == RAID_DEBOUNCE_DELAY

    def test_parses_ids_and_sets(self, env):
        env.setenv("ALERT_CHANNEL_ID", "123")
        env.setenv("DEVELOPER_ID", "not-a-number")
        env.setenv("LOCKDOWN_EXCLUDE_IDS", "1, 2,x,3")

        config = load_config()

        assert config.alert_channel_id == 123
        assert config.developer_id is None
        assert config.lockdown_exclude_ids == {1, 2, 3}

    def test_out_of_range_timing_is_clamped(self, env):
        env.setenv("SPAM_COOLDOWN_SECONDS", "99999")
        env.setenv("RAID_DEBOUNCE_SECONDS", "-1")

        config = load_config()

        assert config.spam_cooldown_seconds == 3600
        assert config.raid_debounce_seconds == 0.0

    def test_invalid_webhook_is_ignored(self, env):
        env.setenv("ERROR_WEBHOOK_URL", "ftp://example")
        assert load_config().error_webhook_url is None


# =============================================================================
# Audit Log
# =============================================================================

class TestAuditLog:
    """Tests for AuditLog."""

    @pytest.mark.asyncio
    async def test_records_and_filters_history(self):
        audit = AuditLog()
        await audit.record(IncidentType.RAID_DETECTED, 1, raid_kind="join")
        await audit.record(IncidentType.LOCKDOWN_STARTED, 1)
        await audit.record(IncidentType.RAID_DETECTED, 2, raid_kind="role")

        assert len(audit.history()) == 3
        assert [r.type for r in audit.history(guild_id=1)] == [
            IncidentType.RAID_DETECTED, IncidentType.LOCKDOWN_STARTED,
        ]
        raids = audit.history(incident_type=IncidentType.RAID_DETECTED)
        assert [r.details["raid_kind"] for r in raids] == ["join", "role"]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        audit = AuditLog(history_size=3)
        for guild_id in range(5):
            await audit.record(IncidentType.SPAM_DETECTED, guild_id)
        assert [r.guild_id for r in audit.history()] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_sink_receives_records(self):
        sink = AsyncMock()
        audit = AuditLog(sink=sink)

        entry = await audit.record(IncidentType.LOCKDOWN_ENDED, 1, reason="expired")

        sink.assert_awaited_once_with(entry)

    @pytest.mark.asyncio
    async def test_sink_failure_is_contained(self):
        audit = AuditLog(sink=AsyncMock(side_effect=RuntimeError("down")))

        entry = await audit.record(IncidentType.LOCKDOWN_ENDED, 1)

        assert entry.type is IncidentType.LOCKDOWN_ENDED
        assert len(audit.history()) == 1
