"""
RaidShield - Raid Lockdown Package
==================================

Lockdown state machine, permission math and channel operations.

Structure:
    constants.py    - Lockdown policy (deny mask, overwrite fields)
    models.py       - LockdownRecord, LockdownState
    permissions.py  - Pure lock/restore permission functions
    channel_ops.py  - Per-channel overwrite lock/unlock
    service.py      - LockdownService state machine
"""

from raidshield.core.rules import RaidKind

from .constants import LOCKDOWN_DENY, SAFE_DEFAULT_PERMISSIONS
from .models import LockdownRecord, LockdownState
from .permissions import lock_permissions, restore_permissions
from .service import LockdownService

__all__ = [
    "LockdownService",
    "LockdownRecord",
    "LockdownState",
    "RaidKind",
    "LOCKDOWN_DENY",
    "SAFE_DEFAULT_PERMISSIONS",
    "lock_permissions",
    "restore_permissions",
]
