"""
RaidShield - Detection Rules
============================

Per-guild detection rules read from the external configuration store.

DESIGN:
    The config store (dashboard + database) owns the rule documents; this
    module only reads them. Documents keep the store's shape:

        {
            "automodRules": {
                "Spam":  [{"messageCount": 3, "timeWindow": 5}],
                "Raids": [{"raidType": "join", "joinCount": 5,
                           "timeWindow": 10, "lockdownDuration": 10}]
            }
        }

    Malformed or out-of-range rules are configuration errors: detectors
    skip them silently instead of raising.
"""

import json
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from raidshield.core.constants import (
    CACHE_RETENTION_WINDOWS,
    CONFIG_CACHE_TTL,
    LOCKDOWN_MAX_DURATION,
    LOCKDOWN_MIN_DURATION,
    NS_RECENT_CHANNELS,
    NS_RECENT_JOINS,
    NS_RECENT_MESSAGES,
    NS_RECENT_ROLES,
)
from raidshield.core.logger import logger
from raidshield.utils.cache import TTLCache


# =============================================================================
# Raid Kinds
# =============================================================================

class RaidKind(str, Enum):
    """The kinds of coordinated attack a lockdown can answer."""

    JOIN = "join"
    CHANNEL = "channel"
    ROLE = "role"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Any) -> Optional["RaidKind"]:
        """Return the matching kind, or None for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


# Count field used by each raid kind in the store documents
_RAID_COUNT_FIELDS = {
    RaidKind.JOIN: "joinCount",
    RaidKind.CHANNEL: "channelCount",
    RaidKind.ROLE: "roleCount",
}

# Cache namespace each raid kind is counted in
_RAID_NAMESPACES = {
    RaidKind.JOIN: NS_RECENT_JOINS,
    RaidKind.CHANNEL: NS_RECENT_CHANNELS,
    RaidKind.ROLE: NS_RECENT_ROLES,
}


def max_time_window(namespace: str) -> int:
    """
    Longest rule window a namespace can count exactly.

    The periodic sweep drops events older than the namespace retention,
    so a longer window would undercount after every sweep.
    """
    return CACHE_RETENTION_WINDOWS.get(namespace, min(CACHE_RETENTION_WINDOWS.values()))


# =============================================================================
# Rule Dataclasses
# =============================================================================

@dataclass(frozen=True)
class SpamRule:
    """N messages per user within a window of seconds."""
    message_count: int
    time_window: int
    title: str = ""

    def is_valid(self) -> bool:
        return (
            1 <= self.message_count <= 100
            and 1 <= self.time_window <= max_time_window(NS_RECENT_MESSAGES)
        )


@dataclass(frozen=True)
class RaidRule:
    """N guild-wide events of one kind within a window, answered by a lockdown."""
    raid_kind: RaidKind
    threshold: int
    time_window: int
    lockdown_duration: int
    title: str = ""

    def is_valid(self) -> bool:
        window_limit = max_time_window(_RAID_NAMESPACES.get(self.raid_kind, ""))
        return (
            self.threshold >= 1
            and 1 <= self.time_window <= window_limit
            and LOCKDOWN_MIN_DURATION <= self.lockdown_duration <= LOCKDOWN_MAX_DURATION
        )


@dataclass
class ServerRules:
    """All rules configured for one guild."""
    guild_id: int
    spam: List[SpamRule] = field(default_factory=list)
    raids: List[RaidRule] = field(default_factory=list)

    def spam_rule(self) -> Optional[SpamRule]:
        """First configured spam rule (the store allows one active rule)."""
        return self.spam[0] if self.spam else None

    def raid_rule(self, kind: RaidKind) -> Optional[RaidRule]:
        """First raid rule for the given kind."""
        for rule in self.raids:
            if rule.raid_kind is kind:
                return rule
        return None

    @classmethod
    def from_dict(cls, guild_id: int, data: Dict[str, Any]) -> "ServerRules":
        """
        Build rules from a config store document.

        Entries that cannot be parsed are dropped with a warning; the
        remaining entries still apply.
        """
        automod = data.get("automodRules", data) or {}
        rules = cls(guild_id=guild_id)
        if not isinstance(automod, dict):
            logger.warning("Automod Rules Skipped", [
                ("Guild", str(guild_id)),
                ("Error", f"expected an object, got {type(automod).__name__}"),
            ])
            return rules

        for entry in automod.get("Spam") or []:
            try:
                rules.spam.append(SpamRule(
                    message_count=int(entry["messageCount"]),
                    time_window=int(entry["timeWindow"]),
                    title=str(entry.get("title", "")),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Spam Rule Skipped", [
                    ("Guild", str(guild_id)),
                    ("Error", f"{type(e).__name__}: {e}"),
                ])

        for entry in automod.get("Raids") or []:
            kind = RaidKind.parse(entry.get("raidType")) if isinstance(entry, dict) else None
            if kind is None:
                logger.warning("Raid Rule Skipped", [
                    ("Guild", str(guild_id)),
                    ("Error", f"unknown raidType {entry!r}"[:100]),
                ])
                continue
            count_field = _RAID_COUNT_FIELDS.get(kind, "count")
            try:
                rules.raids.append(RaidRule(
                    raid_kind=kind,
                    threshold=int(entry.get(count_field, entry.get("count"))),
                    time_window=int(entry["timeWindow"]),
                    lockdown_duration=int(entry["lockdownDuration"]),
                    title=str(entry.get("title", "")),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Raid Rule Skipped", [
                    ("Guild", str(guild_id)),
                    ("Kind", kind.value),
                    ("Error", f"{type(e).__name__}: {e}"),
                ])

        return rules


# =============================================================================
# Rule Providers
# =============================================================================

class RuleProvider(Protocol):
    """Read-only access to per-guild rules."""

    async def get_rules(self, guild_id: int) -> Optional[ServerRules]:
        ...


class StaticRuleProvider:
    """In-memory rules, for tests and single-guild deployments."""

    def __init__(self, rules: Optional[Dict[int, ServerRules]] = None) -> None:
        self._rules: Dict[int, ServerRules] = dict(rules or {})

    def set_rules(self, rules: ServerRules) -> None:
        self._rules[rules.guild_id] = rules

    async def get_rules(self, guild_id: int) -> Optional[ServerRules]:
        return self._rules.get(guild_id)


class JsonRuleProvider:
    """
    Rules exported from the config store as a JSON file.

    The file maps guild IDs (as strings) to store documents. It is read
    lazily on first use and again on reload().
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._rules: Optional[Dict[int, ServerRules]] = None

    def reload(self) -> int:
        """
        Re-read the rules file.

        Returns:
            Number of guilds loaded (0 if the file is missing or invalid).
        """
        self._rules = {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                documents = json.load(f)
        except FileNotFoundError:
            logger.warning("Rules File Not Found", [("Path", str(self.path))])
            return 0
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Rules File Unreadable", [
                ("Path", str(self.path)),
                ("Error", str(e)[:100]),
            ])
            return 0

        if not isinstance(documents, dict):
            logger.error("Rules File Unreadable", [
                ("Path", str(self.path)),
                ("Error", f"expected an object, got {type(documents).__name__}"),
            ])
            return 0

        for guild_key, document in documents.items():
            try:
                guild_id = int(guild_key)
            except ValueError:
                logger.warning(f"Rules file: ignoring non-numeric guild key {guild_key!r}")
                continue
            if document is not None and not isinstance(document, dict):
                logger.warning("Rules Document Skipped", [
                    ("Guild", str(guild_id)),
                    ("Error", f"expected an object, got {type(document).__name__}"),
                ])
                continue
            self._rules[guild_id] = ServerRules.from_dict(guild_id, document or {})

        logger.tree("Rules Loaded", [
            ("Path", str(self.path)),
            ("Guilds", str(len(self._rules))),
        ], emoji="📋")
        return len(self._rules)

    async def get_rules(self, guild_id: int) -> Optional[ServerRules]:
        if self._rules is None:
            self.reload()
        return self._rules.get(guild_id)


class CachedRuleProvider:
    """Wraps another provider with a per-guild TTL cache."""

    def __init__(
        self,
        inner: RuleProvider,
        ttl: timedelta = timedelta(seconds=CONFIG_CACHE_TTL),
        max_size: int = 500,
    ) -> None:
        self._inner = inner
        self._cache: TTLCache[int, Optional[ServerRules]] = TTLCache(ttl=ttl, max_size=max_size)

    async def get_rules(self, guild_id: int) -> Optional[ServerRules]:
        if guild_id in self._cache:
            return self._cache.get(guild_id)
        rules = await self._inner.get_rules(guild_id)
        if rules is not None:
            self._cache.set(guild_id, rules)
        return rules

    def invalidate(self, guild_id: Optional[int] = None) -> None:
        """Drop one guild's cached rules, or all of them."""
        if guild_id is None:
            self._cache.clear()
        else:
            self._cache.delete(guild_id)


__all__ = [
    "RaidKind",
    "SpamRule",
    "RaidRule",
    "ServerRules",
    "RuleProvider",
    "StaticRuleProvider",
    "JsonRuleProvider",
    "CachedRuleProvider",
    "max_time_window",
]
