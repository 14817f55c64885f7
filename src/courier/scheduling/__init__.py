"""Scheduling subsystem: deferred and recurring post delivery.

Public API:
- SchedulingEngine: Restores and owns the structures below
- DeferralLedger: One-shot posts delivered after a delay
- PresenceMailbox: Posts held until the recipient shows activity
- QueueManager: Named cron-scheduled message queues
- TimerService: Asyncio one-shot timers
- CronSchedule: Compiled cron expression

Types:
- Post, DeferredPost, Queue, QueueStatus
- PostSender: Async collaborator that creates posts
"""

from courier.errors import (
    AmbiguousRecipientError,
    DeliveryError,
    DuplicateNameError,
    InvalidDurationError,
    InvalidNameError,
    InvalidPositionError,
    InvalidScheduleError,
    NotFoundError,
    PersistenceError,
    SchedulingError,
)
from courier.scheduling.cron import CronSchedule
from courier.scheduling.deferrals import DeferralLedger
from courier.scheduling.durations import parse_duration
from courier.scheduling.engine import SchedulingEngine
from courier.scheduling.mailbox import PresenceMailbox
from courier.scheduling.queues import QueueManager
from courier.scheduling.timers import TimerScheduler, TimerService
from courier.scheduling.types import (
    DeferredPost,
    Post,
    PostSender,
    Queue,
    QueueStatus,
)

__all__ = [
    "AmbiguousRecipientError",
    "CronSchedule",
    "DeferralLedger",
    "DeferredPost",
    "DeliveryError",
    "DuplicateNameError",
    "InvalidDurationError",
    "InvalidNameError",
    "InvalidPositionError",
    "InvalidScheduleError",
    "NotFoundError",
    "PersistenceError",
    "Post",
    "PostSender",
    "PresenceMailbox",
    "Queue",
    "QueueManager",
    "QueueStatus",
    "SchedulingEngine",
    "SchedulingError",
    "TimerScheduler",
    "TimerService",
    "parse_duration",
]
