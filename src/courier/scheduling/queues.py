"""Recurring queue manager.

A queue is a named FIFO backlog bound to a cron schedule and a channel. On
every scheduled tick the head message is posted and removed, then the queue
re-arms for the next occurrence. Ticks on an empty backlog only re-arm.

Timers are never revoked. Each arm hands the timer an incarnation token; a
tick whose queue was deleted, recreated or re-armed since does nothing.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Any

from courier.errors import (
    DuplicateNameError,
    InvalidNameError,
    InvalidPositionError,
    InvalidScheduleError,
    NotFoundError,
)
from courier.scheduling.cron import CronSchedule
from courier.scheduling.persistence import QUEUES_KEY, deliver, load_json, save_json
from courier.scheduling.timers import Clock, TimerScheduler, utcnow
from courier.scheduling.types import Post, PostSender, Queue, QueueStatus
from courier.storage import KeyValueStore

logger = logging.getLogger(__name__)

# Lower bound for the delay between two ticks of the same queue
DEFAULT_MIN_REARM_DELAY = timedelta(seconds=1)


@dataclass
class _QueueSlot:
    queue: Queue
    cron: CronSchedule | None  # None when the stored schedule failed to compile
    generation: str = ""
    # Cron occurrence the current timer was armed for
    next_fire: datetime | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class QueueManager:
    """Named cron-scheduled message queues.

    Example:
        queues = QueueManager(store, sender, timers, timezone="Europe/Madrid")
        await queues.restore()
        await queues.create_queue("daily", "0 9 * * *", "town-square", "alice")
        await queues.add_message("daily", "Good morning!")
    """

    def __init__(
        self,
        store: KeyValueStore,
        sender: PostSender,
        timers: TimerScheduler,
        *,
        timezone: str = "UTC",
        min_rearm_delay: timedelta = DEFAULT_MIN_REARM_DELAY,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._sender = sender
        self._timers = timers
        self._timezone = timezone
        self._min_rearm_delay = max(min_rearm_delay, timedelta(milliseconds=1))
        self._clock = clock
        self._slots: dict[str, _QueueSlot] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Queue lifecycle
    # ------------------------------------------------------------------

    async def create_queue(
        self, name: str, schedule: str, channel_id: str, owner_id: str
    ) -> Queue:
        """Create a queue and arm it for the next occurrence of ``schedule``.

        Raises:
            InvalidNameError: If the name is empty or contains whitespace.
            InvalidScheduleError: If the schedule does not compile.
            DuplicateNameError: If a queue with this name exists.
        """
        name = _validate_name(name)
        cron = CronSchedule(schedule, self._timezone)

        async with self._lock:
            if name in self._slots:
                raise DuplicateNameError(f"Queue {name} already exists")
            queue = Queue(
                name=name,
                schedule=cron.source,
                owner_id=owner_id,
                channel_id=channel_id,
            )
            slot = _QueueSlot(queue=queue, cron=cron)
            # Arm before publishing: a schedule without occurrences leaves no trace
            next_fire = self._arm(slot)
            self._slots[name] = slot
            self._save()

        logger.info(
            "queue_created",
            extra={
                "queue.name": name,
                "queue.schedule": cron.source,
                "queue.next_fire": next_fire.isoformat() if next_fire else None,
                "messaging.channel_id": channel_id,
            },
        )
        return _copy(queue)

    async def delete_queue(self, name: str) -> None:
        """Delete a queue. Its armed timer becomes a no-op.

        Raises:
            NotFoundError: If the queue does not exist.
        """
        async with self._lock:
            if self._slots.pop(name, None) is None:
                raise NotFoundError(f"Queue {name} doesn't exist")
            self._save()
        logger.info("queue_deleted", extra={"queue.name": name})

    async def reschedule(self, name: str, schedule: str) -> Queue:
        """Replace a queue's schedule and re-arm it.

        Raises:
            InvalidScheduleError: If the schedule does not compile.
            NotFoundError: If the queue does not exist.
        """
        cron = CronSchedule(schedule, self._timezone)

        async with self._locked(name) as slot:
            previous = (slot.cron, slot.next_fire)
            slot.cron, slot.next_fire = cron, None
            try:
                self._arm(slot)
            except InvalidScheduleError:
                slot.cron, slot.next_fire = previous
                raise
            slot.queue.schedule = cron.source
            self._save()
            queue = _copy(slot.queue)

        logger.info(
            "queue_rescheduled",
            extra={"queue.name": name, "queue.schedule": cron.source},
        )
        return queue

    # ------------------------------------------------------------------
    # Backlog mutations
    # ------------------------------------------------------------------

    async def add_message(self, name: str, message: str) -> int:
        """Append a message. Returns its position."""
        async with self._locked(name) as slot:
            slot.queue.messages.append(message)
            self._save()
            return len(slot.queue.messages) - 1

    async def insert_message(self, name: str, position: int, message: str) -> None:
        """Insert ``message`` so it ends up at ``position``.

        Positions run from 0 to the backlog length; the length appends.

        Raises:
            InvalidPositionError: If the position is out of range.
        """
        async with self._locked(name) as slot:
            messages = slot.queue.messages
            if not 0 <= position <= len(messages):
                raise InvalidPositionError(
                    f"Position {position} is out of range for queue {name}"
                )
            messages.insert(position, message)
            self._save()

    async def remove_message(self, name: str, position: int) -> str:
        """Remove and return the message at ``position``.

        Raises:
            InvalidPositionError: If no message has this position.
        """
        async with self._locked(name) as slot:
            messages = slot.queue.messages
            if not 0 <= position < len(messages):
                raise InvalidPositionError(
                    f"Position {position} is out of range for queue {name}"
                )
            removed = messages.pop(position)
            self._save()
            return removed

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_queue(self, name: str) -> Queue:
        return _copy(self._require(name).queue)

    def list_queues(self) -> list[QueueStatus]:
        """All queues sorted by name."""
        now = self._clock()
        statuses = []
        for name in sorted(self._slots):
            slot = self._slots[name]
            queue = slot.queue
            statuses.append(
                QueueStatus(
                    name=queue.name,
                    schedule=queue.schedule,
                    owner_id=queue.owner_id,
                    channel_id=queue.channel_id,
                    pending=len(queue.messages),
                    next_message=queue.messages[0] if queue.messages else None,
                    next_fire=self._next_fire(slot, now),
                )
            )
        return statuses

    def list_messages(self, name: str) -> list[tuple[int, str]]:
        """Backlog of ``name`` as (position, message) pairs."""
        return list(enumerate(self._require(name).queue.messages))

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def tick(self, name: str, generation: str | None = None) -> bool:
        """Deliver the head message of ``name`` and re-arm.

        Timer-driven ticks pass the token they were armed with; a stale token,
        or a queue that no longer exists, makes this a no-op. Returns True when
        a message was consumed.
        """
        slot = self._current(name, generation)
        if slot is None:
            logger.debug(f"Queue {name} gone or re-armed, dropping stale tick")
            return False

        async with slot.lock:
            if self._current(name, generation) is not slot:
                return False

            consumed = False
            queue = slot.queue
            if queue.messages:
                post = Post(
                    user_id=queue.owner_id,
                    channel_id=queue.channel_id,
                    message=queue.messages[0],
                )
                # Failed deliveries are consumed too; there is no retry
                await deliver(self._sender, post, source=f"queue:{name}")
                queue.messages.pop(0)
                self._save()
                consumed = True

            # Deleted while delivering
            if self._slots.get(name) is slot:
                # Timer ticks anchor on their own occurrence; manual ticks on now
                fired = slot.next_fire if generation is not None else None
                self._arm_or_park(slot, after=fired)
            return consumed

    async def restore(self) -> int:
        """Load persisted queues, recompile their schedules and arm them.

        A schedule that no longer compiles is logged and its queue kept
        unarmed until rescheduled. Returns the number of queues loaded.
        """
        async with self._lock:
            queues = decode_queue_table(load_json(self._store, QUEUES_KEY))
            self._slots = {}
            for name, queue in queues.items():
                try:
                    cron: CronSchedule | None = CronSchedule(
                        queue.schedule, self._timezone
                    )
                except InvalidScheduleError as e:
                    logger.error(
                        "queue_schedule_invalid",
                        extra={
                            "queue.name": name,
                            "queue.schedule": queue.schedule,
                            "error.message": str(e),
                        },
                    )
                    cron = None
                self._slots[name] = _QueueSlot(queue=queue, cron=cron)

            for slot in self._slots.values():
                self._arm_or_park(slot)

        logger.info("queues_restored", extra={"queue.count": len(self._slots)})
        return len(self._slots)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _arm(self, slot: _QueueSlot, after: datetime | None = None) -> datetime | None:
        """Arm the next tick, invalidating any previously armed timer.

        ``after`` is the occurrence that just fired. The next tick is never
        armed for it again, even when the wall clock still reads slightly
        before it.

        Raises:
            InvalidScheduleError: If the schedule has no next occurrence. The
                previously armed timer stays valid.
        """
        if slot.cron is None:
            slot.generation = uuid.uuid4().hex
            slot.next_fire = None
            return None

        now = self._clock()
        occurrence = slot.cron.next_after(max(now, after) if after else now)
        slot.generation = uuid.uuid4().hex
        slot.next_fire = occurrence

        delay = occurrence - now
        if delay < self._min_rearm_delay:
            logger.warning(
                "queue_rearm_clamped",
                extra={"queue.name": slot.queue.name, "queue.delay": str(delay)},
            )
            delay = self._min_rearm_delay

        name = slot.queue.name
        self._timers.schedule_once(
            f"check queue {name}", delay, partial(self.tick, name, slot.generation)
        )
        return now + delay

    def _arm_or_park(self, slot: _QueueSlot, after: datetime | None = None) -> None:
        """Arm ``slot``, leaving it unarmed when its schedule has run dry."""
        try:
            self._arm(slot, after)
        except InvalidScheduleError as e:
            logger.error(
                "queue_schedule_invalid",
                extra={
                    "queue.name": slot.queue.name,
                    "queue.schedule": slot.queue.schedule,
                    "error.message": str(e),
                },
            )
            slot.cron = None
            self._arm(slot)

    def _next_fire(self, slot: _QueueSlot, now: datetime) -> datetime | None:
        if slot.cron is None:
            return None
        try:
            return slot.cron.next_after(now)
        except InvalidScheduleError:
            return None

    def _current(self, name: str, generation: str | None) -> _QueueSlot | None:
        slot = self._slots.get(name)
        if slot is None:
            return None
        if generation is not None and slot.generation != generation:
            return None
        return slot

    def _require(self, name: str) -> _QueueSlot:
        slot = self._slots.get(name)
        if slot is None:
            raise NotFoundError(f"Unknown queue {name}")
        return slot

    @asynccontextmanager
    async def _locked(self, name: str) -> AsyncIterator[_QueueSlot]:
        """Hold a queue's lock, re-checking it still exists once acquired."""
        slot = self._require(name)
        async with slot.lock:
            if self._slots.get(name) is not slot:
                raise NotFoundError(f"Unknown queue {name}")
            yield slot

    def _save(self) -> None:
        save_json(
            self._store,
            QUEUES_KEY,
            {name: self._slots[name].queue.to_dict() for name in sorted(self._slots)},
        )


def decode_queue_table(raw: Any) -> dict[str, Queue]:
    """Parse a persisted queue table, skipping malformed queues."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.error("queue_table_malformed", extra={"raw.type": type(raw).__name__})
        return {}

    queues: dict[str, Queue] = {}
    for name, item in raw.items():
        try:
            queue = Queue.from_dict({"name": name, **item})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "queue_skipped", extra={"queue.name": name, "error.message": str(e)}
            )
            continue
        queues[queue.name] = queue
    return queues


def _validate_name(name: str) -> str:
    text = name.strip()
    if not text or any(ch.isspace() for ch in text):
        raise InvalidNameError("Queue names must be non-empty and have no spaces")
    return text


def _copy(queue: Queue) -> Queue:
    return Queue(
        name=queue.name,
        schedule=queue.schedule,
        owner_id=queue.owner_id,
        channel_id=queue.channel_id,
        messages=list(queue.messages),
    )
