"""
RaidShield - Cooldown & Debounce Register
=========================================

Two suppression mechanisms, deliberately independent from the rate
counter's window.

DESIGN:
    CooldownRegister (hard cooldown):
        Once a subject is cooled down, every qualifying action is
        suppressed until the entry expires. Used for spam offenders
        ("guild:user" keys) and operator commands ("command:user" keys).
        Each entry owns its expiry task; clear() cancels it.

    Debouncer (trailing):
        Collapses a burst of threshold breaches for the same
        (guild, raid kind) into one callback. A new trigger while a timer
        is pending cancels and restarts it; the callback fires once after
        `delay` seconds with no further triggers.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Hashable, Optional

from raidshield.core.constants import COMMAND_COOLDOWNS, RAID_DEBOUNCE_DELAY
from raidshield.core.logger import logger
from raidshield.utils.async_utils import create_safe_task


# =============================================================================
# Hard Cooldown
# =============================================================================

@dataclass
class CooldownEntry:
    """A self-expiring suppression for one subject."""
    subject_key: Hashable
    expires_at: float
    expiry_task: Optional[asyncio.Task] = field(default=None, repr=False)


class CooldownRegister:
    """
    Per-subject hard cooldowns.

    is_active() also checks expiry lazily, so a late expiry task never
    extends a cooldown.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[Hashable, CooldownEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def apply(self, subject_key: Hashable, seconds: float) -> CooldownEntry:
        """
        Start (or restart) a cooldown for subject_key.

        Must be called from a running event loop.
        """
        self.clear(subject_key)

        entry = CooldownEntry(subject_key=subject_key, expires_at=self._clock() + seconds)
        self._entries[subject_key] = entry
        entry.expiry_task = create_safe_task(
            self._expire(entry, seconds),
            f"Cooldown Expiry ({subject_key})",
        )
        return entry

    async def _expire(self, entry: CooldownEntry, seconds: float) -> None:
        await asyncio.sleep(seconds)
        # Only remove the entry this task belongs to
        if self._entries.get(entry.subject_key) is entry:
            del self._entries[entry.subject_key]

    def get(self, subject_key: Hashable) -> Optional[CooldownEntry]:
        entry = self._entries.get(subject_key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self.clear(subject_key)
            return None
        return entry

    def is_active(self, subject_key: Hashable) -> bool:
        return self.get(subject_key) is not None

    def remaining(self, subject_key: Hashable) -> float:
        """Seconds left on the cooldown (0 if none)."""
        entry = self.get(subject_key)
        if entry is None:
            return 0.0
        return max(0.0, entry.expires_at - self._clock())

    def clear(self, subject_key: Hashable) -> bool:
        """
        Remove a cooldown and cancel its expiry task.

        Returns:
            True if a cooldown existed.
        """
        entry = self._entries.pop(subject_key, None)
        if entry is None:
            return False
        task = entry.expiry_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        return True

    def clear_all(self) -> None:
        for key in list(self._entries.keys()):
            self.clear(key)

    # =========================================================================
    # Command Cooldowns
    # =========================================================================

    def check_command(self, user_id: int, command: str) -> bool:
        """
        Gate an operator command.

        Returns:
            True if the command may run (a cooldown is started), False if
            the user is still cooled down for it.
        """
        key = f"{command}:{user_id}"
        if self.is_active(key):
            logger.debug("Command On Cooldown", [
                ("Command", command),
                ("User", str(user_id)),
                ("Remaining", f"{self.remaining(key):.0f}s"),
            ])
            return False

        seconds = COMMAND_COOLDOWNS.get(command, 0)
        if seconds > 0:
            self.apply(key, seconds)
        return True


# =============================================================================
# Debounce
# =============================================================================

class Debouncer:
    """Trailing debounce keyed by (guild_id, raid kind) or any hashable."""

    def __init__(self, delay: float = RAID_DEBOUNCE_DELAY) -> None:
        self.delay = delay
        self._pending: Dict[Hashable, asyncio.Task] = {}

    def trigger(self, key: Hashable, callback: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """
        (Re)start the timer for key.

        Any pending timer for the same key is cancelled; its callback never
        runs. Must be called from a running event loop.
        """
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()

        task = create_safe_task(self._fire(key, callback), f"Debounce ({key})")
        self._pending[key] = task
        return task

    async def _fire(self, key: Hashable, callback: Callable[[], Awaitable[object]]) -> None:
        await asyncio.sleep(self.delay)
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        await callback()

    def pending(self, key: Hashable) -> bool:
        task = self._pending.get(key)
        return task is not None and not task.done()

    def cancel(self, key: Hashable) -> bool:
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for key in list(self._pending.keys()):
            if self.cancel(key):
                cancelled += 1
        return cancelled


__all__ = [
    "CooldownEntry",
    "CooldownRegister",
    "Debouncer",
]
