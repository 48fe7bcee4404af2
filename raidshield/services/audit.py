"""
RaidShield - Incident Audit Log
===============================

Structured incident records produced by detectors and the lockdown
state machine.

DESIGN:
    Every record is logged as a tree and kept in a bounded in-memory
    history (for /raidstatus). An optional async sink forwards records to
    an external audit collaborator; sink failures are logged, never
    raised into the caller.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from raidshield.core.logger import logger


class IncidentType(str, Enum):
    RAID_DETECTED = "raid_detected"
    LOCKDOWN_STARTED = "lockdown_started"
    LOCKDOWN_ENDED = "lockdown_ended"
    SPAM_DETECTED = "spam_detected"
    CHANNELS_NUKED = "channels_nuked"


_EMOJI = {
    IncidentType.RAID_DETECTED: "🚨",
    IncidentType.LOCKDOWN_STARTED: "🔒",
    IncidentType.LOCKDOWN_ENDED: "🔓",
    IncidentType.SPAM_DETECTED: "🛑",
    IncidentType.CHANNELS_NUKED: "💥",
}


@dataclass(frozen=True)
class IncidentRecord:
    """One audit entry: what happened, where, when, with what counts."""
    type: IncidentType
    guild_id: int
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)


AuditSink = Callable[[IncidentRecord], Awaitable[None]]


class AuditLog:
    """Collects incident records for logging and inspection."""

    def __init__(self, sink: Optional[AuditSink] = None, history_size: int = 200) -> None:
        self._sink = sink
        self._history: Deque[IncidentRecord] = deque(maxlen=history_size)

    async def record(self, incident_type: IncidentType, guild_id: int, **details: Any) -> IncidentRecord:
        """Log an incident and forward it to the sink."""
        entry = IncidentRecord(
            type=incident_type,
            guild_id=guild_id,
            timestamp=time.time(),
            details=details,
        )
        self._history.append(entry)

        logger.tree(incident_type.value.replace("_", " ").upper(), [
            ("Guild", str(guild_id)),
            *((key.replace("_", " ").title(), str(value)) for key, value in details.items()),
        ], emoji=_EMOJI.get(incident_type, "📋"))

        if self._sink is not None:
            try:
                await self._sink(entry)
            except Exception as e:
                logger.error("Audit Sink Failed", [
                    ("Incident", incident_type.value),
                    ("Guild", str(guild_id)),
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])
        return entry

    def history(
        self,
        guild_id: Optional[int] = None,
        incident_type: Optional[IncidentType] = None,
    ) -> List[IncidentRecord]:
        """Recorded incidents, oldest first, optionally filtered."""
        return [
            r for r in self._history
            if (guild_id is None or r.guild_id == guild_id)
            and (incident_type is None or r.type is incident_type)
        ]

    def clear(self) -> None:
        self._history.clear()


__all__ = [
    "AuditLog",
    "AuditSink",
    "IncidentRecord",
    "IncidentType",
]
