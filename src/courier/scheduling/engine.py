"""Scheduling engine: wires the ledger, mailbox and queues together."""

import logging
from datetime import timedelta

from courier.scheduling.deferrals import DeferralLedger
from courier.scheduling.mailbox import PresenceMailbox
from courier.scheduling.queues import DEFAULT_MIN_REARM_DELAY, QueueManager
from courier.scheduling.timers import Clock, TimerScheduler, TimerService, utcnow
from courier.scheduling.types import PostSender
from courier.storage import KeyValueStore

logger = logging.getLogger(__name__)


class SchedulingEngine:
    """Owns the three scheduling structures for one process.

    Example:
        engine = SchedulingEngine(store, sender)
        await engine.start()       # restore + replay persisted state
        await engine.presence_signal("user-1")
        await engine.stop()
    """

    def __init__(
        self,
        store: KeyValueStore,
        sender: PostSender,
        timers: TimerScheduler | None = None,
        *,
        timezone: str = "UTC",
        min_rearm_delay: timedelta = DEFAULT_MIN_REARM_DELAY,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._timers = timers if timers is not None else TimerService()
        self._started = False
        self.mailbox = PresenceMailbox(store, sender)
        self.deferrals = DeferralLedger(store, sender, self._timers, clock=clock)
        self.queues = QueueManager(
            store,
            sender,
            self._timers,
            timezone=timezone,
            min_rearm_delay=min_rearm_delay,
            clock=clock,
        )

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Restore persisted state. Each structure restores independently."""
        if self._started:
            return
        self._started = True

        for name, restore in (
            ("waiting for online", self.mailbox.restore),
            ("deferred", self.deferrals.restore),
            ("queues", self.queues.restore),
        ):
            try:
                await restore()
            except Exception:
                logger.exception("state_restore_failed", extra={"state.name": name})

        logger.info("scheduling_engine_started")

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        if isinstance(self._timers, TimerService):
            await self._timers.close()
        logger.info("scheduling_engine_stopped")

    async def presence_signal(self, user_id: str) -> int:
        """A user showed activity: flush their mailbox."""
        return await self.mailbox.flush(user_id)
