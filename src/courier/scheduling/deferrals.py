"""One-shot deferral ledger.

Holds posts scheduled for a single future delivery. The ledger is written
through to the store after every mutation and replayed at start-up: entries
that came due while the process was down are delivered immediately, the rest
are re-armed for their remaining time.

Delivery is at-least-once with respect to crashes. A crash after the post is
created but before the ledger is persisted redelivers it on the next start.
An entry whose delivery is cancelled at shutdown stays in the ledger.
"""

import asyncio
import logging
import uuid
from datetime import UTC, timedelta
from functools import partial
from typing import Any

from courier.errors import NotFoundError
from courier.scheduling.durations import coerce_delay
from courier.scheduling.persistence import (
    DEFERRED_POSTS_KEY,
    deliver,
    load_json,
    save_json,
)
from courier.scheduling.timers import Clock, TimerScheduler, utcnow
from courier.scheduling.types import DeferredPost, Post, PostSender
from courier.storage import KeyValueStore

logger = logging.getLogger(__name__)


class DeferralLedger:
    """Pending single-fire deferred posts."""

    def __init__(
        self,
        store: KeyValueStore,
        sender: PostSender,
        timers: TimerScheduler,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._sender = sender
        self._timers = timers
        self._clock = clock
        self._entries: list[DeferredPost] = []
        self._in_flight: set[str] = set()
        self._lock = asyncio.Lock()

    async def defer(self, post: Post, delay: timedelta | str) -> DeferredPost:
        """Schedule ``post`` for delivery after ``delay``.

        Raises:
            InvalidDurationError: If the delay is unparsable or not positive.
        """
        delay = coerce_delay(delay)

        async with self._lock:
            entry = DeferredPost(
                id=uuid.uuid4().hex[:8],
                fire_at=self._clock() + delay,
                post=post,
            )
            self._entries.append(entry)
            self._save()

        self._arm(entry, delay)
        logger.info(
            "post_deferred",
            extra={
                "deferral.id": entry.id,
                "deferral.fire_at": entry.fire_at.isoformat(),
                "messaging.channel_id": post.channel_id,
            },
        )
        return entry

    async def cancel(self, entry_id: str) -> DeferredPost:
        """Remove a pending entry so its timer fires into nothing.

        Raises:
            NotFoundError: If no pending entry has this ID, or it is being
                delivered right now.
        """
        async with self._lock:
            entry = self._find(entry_id)
            if entry is None or entry_id in self._in_flight:
                raise NotFoundError(f"Deferred post {entry_id} not found")
            self._entries.remove(entry)
            self._save()
        logger.info("deferral_cancelled", extra={"deferral.id": entry_id})
        return entry

    def pending(self) -> list[DeferredPost]:
        """Pending entries ordered by fire time."""
        return sorted(self._entries, key=lambda e: e.fire_at)

    async def fire(self, entry_id: str) -> bool:
        """Timer callback: deliver one entry and drop it from the ledger.

        Returns False when the entry no longer exists (cancelled or already
        delivered).
        """
        async with self._lock:
            entry = self._find(entry_id)
            if entry is None or entry_id in self._in_flight:
                logger.debug(f"Deferred post {entry_id} gone, skipping")
                return False
            self._in_flight.add(entry_id)

        try:
            await deliver(self._sender, entry.post, source="deferral")
        except asyncio.CancelledError:
            # Shutdown interrupted delivery; the entry is replayed on restore
            self._in_flight.discard(entry_id)
            raise

        async with self._lock:
            self._in_flight.discard(entry_id)
            self._entries = [e for e in self._entries if e.id != entry_id]
            self._save()
        return True

    async def restore(self) -> int:
        """Load the persisted ledger and replay it.

        Overdue entries are delivered now in fire-time order; the rest are
        persisted back and re-armed. Returns the number of replayed entries.
        """
        async with self._lock:
            entries = decode_ledger(load_json(self._store, DEFERRED_POSTS_KEY))
            now = self._clock()
            due = sorted(
                (e for e in entries if e.fire_at <= now), key=lambda e: e.fire_at
            )
            remaining = [e for e in entries if e.fire_at > now]

            for entry in due:
                await deliver(self._sender, entry.post, source="deferral_replay")

            self._entries = remaining
            self._save()

        for entry in remaining:
            # May already be overdue by now; the timer then fires immediately
            self._arm(entry, entry.fire_at - self._clock())

        logger.info(
            "deferrals_restored",
            extra={"deferral.replayed": len(due), "deferral.pending": len(remaining)},
        )
        return len(due)

    def _arm(self, entry: DeferredPost, delay: timedelta) -> None:
        self._timers.schedule_once(
            f"defer message {entry.id}", delay, partial(self.fire, entry.id)
        )

    def _find(self, entry_id: str) -> DeferredPost | None:
        return next((e for e in self._entries if e.id == entry_id), None)

    def _save(self) -> None:
        save_json(
            self._store, DEFERRED_POSTS_KEY, [e.to_dict() for e in self._entries]
        )


def decode_ledger(raw: Any) -> list[DeferredPost]:
    """Parse a persisted ledger, skipping malformed entries."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.error(
            "deferral_ledger_malformed", extra={"raw.type": type(raw).__name__}
        )
        return []

    entries: list[DeferredPost] = []
    for item in raw:
        try:
            if isinstance(item, dict) and not item.get("id"):
                item = {**item, "id": uuid.uuid4().hex[:8]}
            entry = DeferredPost.from_dict(item)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("deferral_entry_skipped", extra={"error.message": str(e)})
            continue
        if entry.fire_at.tzinfo is None:
            entry = DeferredPost(
                id=entry.id,
                fire_at=entry.fire_at.replace(tzinfo=UTC),
                post=entry.post,
            )
        entries.append(entry)
    return entries
