"""
RaidShield - Anti-Spam Package
==============================

Message flood detection with purge and offender cooldown.
"""

from .service import OUTCOME_SPAM, OUTCOME_SUPPRESSED, SpamDetector

__all__ = ["SpamDetector", "OUTCOME_SPAM", "OUTCOME_SUPPRESSED"]
