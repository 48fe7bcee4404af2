"""
RaidShield - Services Package
=============================

Detection, lockdown and remediation services.

DESIGN:
    Services are plain classes that receive their collaborators (event
    cache, rule provider, audit log, lockdown service) through their
    constructor. GuardBot creates each of them once per process.

Available Services:
    RateCounter: Sliding-window counter over the event cache
    CooldownRegister / Debouncer: Hard cooldowns and trailing debounce
    SpamDetector: Message flood detection with purge
    JoinRaidDetector / ChannelRaidDetector / RoleRaidDetector: Raid bursts
    LockdownService: Per-guild lockdown state machine
    MessagePurger: Bounded history purge with bulk/single fallback
    AuditLog: Structured incident records
"""

# =============================================================================
# Service Imports
# =============================================================================

from .audit import AuditLog, IncidentRecord, IncidentType
from .cooldowns import CooldownRegister, Debouncer
from .rate_counter import RateCounter, RateObservation
from .remediation import MessagePurger, OperationResult, PurgeResult


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "AuditLog",
    "IncidentRecord",
    "IncidentType",
    "CooldownRegister",
    "Debouncer",
    "RateCounter",
    "RateObservation",
    "MessagePurger",
    "OperationResult",
    "PurgeResult",
]
