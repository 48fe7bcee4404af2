"""
RaidShield - Remediation Actions
================================

Message purge after a spam breach and raid channel cleanup.

DESIGN:
    Deletions follow a two-tier policy (bulk_with_fallback):
    1. Try the bulk call for a fixed-size batch
    2. If it fails, delete the batch items one at a time,
       capturing every per-item failure
    Either way the caller gets an OperationResult summary instead of
    relying on log lines alone. A message that is already gone
    (NotFound) counts as deleted.

    History scanning is bounded: a fixed number of pages, never a full
    channel scan.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

import discord

from raidshield.core.constants import (
    BULK_DELETE_MAX_AGE,
    LOG_TRUNCATE_SHORT,
    PURGE_BATCH_SIZE,
    PURGE_FETCH_PAGES,
    PURGE_PAGE_SIZE,
    PURGE_RECENCY_SECONDS,
)
from raidshield.core.logger import logger
from raidshield.utils.discord_rate_limit import log_http_error

T = TypeVar("T")


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class OperationResult:
    """Outcome of a multi-item operation (deletions, channel edits)."""
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    errors: List[str] = None

    def __post_init__(self) -> None:
        if self.errors is None:
            self.errors = []

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count + self.skipped_count

    def merge(self, other: "OperationResult") -> "OperationResult":
        """Add another result's counts into this one."""
        self.success_count += other.success_count
        self.failed_count += other.failed_count
        self.skipped_count += other.skipped_count
        self.errors.extend(other.errors)
        return self


@dataclass
class PurgeResult:
    """Outcome of one spam purge."""
    scanned: int = 0
    matched: int = 0
    deleted: int = 0
    failed: int = 0
    trigger_deleted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        """Matched deletions plus the triggering message."""
        return self.deleted + (1 if self.trigger_deleted else 0)


# =============================================================================
# Two-Tier Deletion
# =============================================================================

def _chunks(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def bulk_with_fallback(
    items: Sequence[T],
    bulk: Callable[[Sequence[T]], Awaitable[object]],
    single: Callable[[T], Awaitable[object]],
    label: str = "Bulk Delete",
    batch_size: int = PURGE_BATCH_SIZE,
) -> OperationResult:
    """
    Apply `bulk` per batch, falling back to `single` per item.

    Args:
        items: Items to process (messages, usually).
        bulk: Coroutine function taking one batch.
        single: Coroutine function taking one item.
        label: Operation name for logs.
        batch_size: Items per bulk call.

    Returns:
        OperationResult with per-item success/failure counts.
    """
    result = OperationResult()

    for index, batch in enumerate(_chunks(list(items), batch_size)):
        try:
            await bulk(batch)
            result.success_count += len(batch)
            continue
        except discord.HTTPException as e:
            logger.warning(f"{label} Failed", [
                ("Batch", str(index + 1)),
                ("Size", str(len(batch))),
                ("Error", str(e)[:LOG_TRUNCATE_SHORT]),
                ("Action", "Falling back to individual deletion"),
            ])

        for item in batch:
            try:
                await single(item)
                result.success_count += 1
            except discord.NotFound:
                result.success_count += 1
            except discord.HTTPException as e:
                result.failed_count += 1
                result.errors.append(str(e)[:LOG_TRUNCATE_SHORT])
                log_http_error(e, f"{label} (Single)", [
                    ("Item", str(getattr(item, "id", item))),
                ])

    return result


# =============================================================================
# Message Purger
# =============================================================================

class MessagePurger:
    """Deletes a spam burst: the trigger plus the offender's recent tail."""

    def __init__(
        self,
        pages: int = PURGE_FETCH_PAGES,
        page_size: int = PURGE_PAGE_SIZE,
        recency_seconds: float = PURGE_RECENCY_SECONDS,
        batch_size: int = PURGE_BATCH_SIZE,
        clock: Callable[[], datetime] = discord.utils.utcnow,
    ) -> None:
        self.pages = pages
        self.page_size = page_size
        self.recency = timedelta(seconds=recency_seconds)
        self.max_age = timedelta(seconds=BULK_DELETE_MAX_AGE)
        self.batch_size = batch_size
        self._clock = clock

    async def delete_message(self, message: discord.Message) -> bool:
        """Delete one message; already-deleted counts as success."""
        try:
            await message.delete()
            return True
        except discord.NotFound:
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Message Delete", [
                ("Channel", str(getattr(message.channel, "id", "?"))),
                ("Message", str(message.id)),
            ])
            return False

    def recency_for(self, window_seconds: Optional[float] = None) -> timedelta:
        """Burst tail window: the configured recency or twice the detection window, whichever is longer."""
        if not window_seconds:
            return self.recency
        return max(self.recency, timedelta(seconds=2 * window_seconds))

    async def collect(
        self,
        message: discord.Message,
        window_seconds: Optional[float] = None,
    ) -> Tuple[PurgeResult, List[discord.Message]]:
        """Scan bounded history before `message` for the author's recent messages."""
        channel = message.channel
        author_id = message.author.id
        now = self._clock()
        recency = self.recency_for(window_seconds)
        result = PurgeResult()
        matches: List[discord.Message] = []

        before: Optional[discord.Message] = message
        for _ in range(self.pages):
            try:
                page = [m async for m in channel.history(limit=self.page_size, before=before)]
            except discord.HTTPException as e:
                log_http_error(e, "Purge History Fetch", [
                    ("Channel", str(channel.id)),
                ])
                break

            if not page:
                break

            for candidate in page:
                result.scanned += 1
                if candidate.id == message.id or candidate.author.id != author_id:
                    continue
                age = now - candidate.created_at
                if age <= recency and age < self.max_age:
                    matches.append(candidate)

            if len(page) < self.page_size:
                break
            before = page[-1]

        matches.sort(key=lambda m: m.created_at, reverse=True)
        result.matched = len(matches)
        return result, matches

    async def purge(
        self,
        message: discord.Message,
        window_seconds: Optional[float] = None,
    ) -> PurgeResult:
        """
        Delete the triggering message, then the author's burst tail.

        The tail reaches back PURGE_RECENCY_SECONDS, or twice the
        detection window when that is longer.

        Missing Manage Messages skips the history purge (the trigger
        message is still attempted). Never raises for Discord errors.
        """
        channel = message.channel
        trigger_deleted = await self.delete_message(message)

        me = getattr(channel.guild, "me", None)
        if me is None or not channel.permissions_for(me).manage_messages:
            logger.warning("Spam Purge Skipped", [
                ("Channel", str(channel.id)),
                ("Reason", "Missing Manage Messages"),
            ])
            return PurgeResult(trigger_deleted=trigger_deleted)

        result, matches = await self.collect(message, window_seconds)
        result.trigger_deleted = trigger_deleted

        if matches:
            deletion = await bulk_with_fallback(
                matches,
                channel.delete_messages,
                self.delete_message_strict,
                label="Spam Purge",
                batch_size=self.batch_size,
            )
            result.deleted = deletion.success_count
            result.failed = deletion.failed_count
            result.errors = deletion.errors

        logger.debug("Spam Purge Complete", [
            ("Channel", str(channel.id)),
            ("Author", str(message.author.id)),
            ("Scanned", str(result.scanned)),
            ("Matched", str(result.matched)),
            ("Deleted", str(result.total_deleted)),
            ("Failed", str(result.failed)),
        ])
        return result

    @staticmethod
    async def delete_message_strict(message: discord.Message) -> None:
        """Per-item fallback: errors propagate to bulk_with_fallback."""
        await message.delete()


# =============================================================================
# Raid Channel Cleanup
# =============================================================================

async def delete_raid_channels(
    guild: discord.Guild,
    channel_ids: Iterable[int],
    reason: str,
) -> OperationResult:
    """
    Delete channels created during a channel raid.

    Channels that no longer exist are skipped. Each deletion is
    independent; one failure never stops the rest.
    """
    result = OperationResult()

    for channel_id in list(channel_ids):
        channel = guild.get_channel(channel_id)
        if channel is None:
            result.skipped_count += 1
            continue
        try:
            await channel.delete(reason=reason)
            result.success_count += 1
        except discord.NotFound:
            result.skipped_count += 1
        except discord.HTTPException as e:
            result.failed_count += 1
            result.errors.append(f"#{getattr(channel, 'name', channel_id)}: {str(e)[:LOG_TRUNCATE_SHORT]}")
            log_http_error(e, "Raid Channel Delete", [
                ("Guild", str(guild.id)),
                ("Channel", str(channel_id)),
            ])

    return result


__all__ = [
    "OperationResult",
    "PurgeResult",
    "MessagePurger",
    "bulk_with_fallback",
    "delete_raid_channels",
]
