"""
RaidShield - Source Package
===========================

Automated spam and raid response for Discord servers.

Package Structure:
- bot.py: GuardBot, composes every service once per process
- commands/: Operator slash commands (/unlock, /cleanraid, /raidstatus)
- core/: Configuration, constants, detection rules and logging
- events/: Gateway event routing to the detectors
- services/: Detectors, rate counter, cooldowns, lockdown, remediation
- utils/: Event cache, async helpers, Discord error logging
"""

__version__ = "1.0.0"
