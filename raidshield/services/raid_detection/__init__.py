"""
RaidShield - Raid Detection Package
===================================

Join, channel and role raid detectors plus the raid channel registry.
"""

from .detectors import ChannelRaidDetector, JoinRaidDetector, RaidDetector, RoleRaidDetector
from .registry import RaidChannelRegistry

__all__ = [
    "RaidDetector",
    "JoinRaidDetector",
    "ChannelRaidDetector",
    "RoleRaidDetector",
    "RaidChannelRegistry",
]
