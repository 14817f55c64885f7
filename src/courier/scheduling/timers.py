"""Timer service: run an async callback once after a delay.

Timers cannot be revoked individually. Callers cancel by invalidation: the
callback re-checks that its entity still exists before acting. ``close()``
drops everything at shutdown.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class TimerScheduler(Protocol):
    """Schedules ``callback`` to run once after ``delay``.

    ``label`` is advisory and only used for diagnostics.
    """

    def schedule_once(
        self, label: str, delay: timedelta, callback: TimerCallback
    ) -> None: ...


class TimerService:
    """Asyncio-backed timer service.

    Example:
        timers = TimerService()
        timers.schedule_once("check queue daily", timedelta(hours=1), tick)
        ...
        await timers.close()
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of armed timers that have not fired yet."""
        return len(self._handles)

    def schedule_once(
        self, label: str, delay: timedelta, callback: TimerCallback
    ) -> None:
        if self._closed:
            logger.debug(f"Timer service closed, dropping timer {label!r}")
            return

        loop = self._loop or asyncio.get_running_loop()
        # Overdue timers fire on the next loop iteration
        seconds = max(0.0, delay.total_seconds())
        handle: asyncio.TimerHandle | None = None

        def fire() -> None:
            if handle is not None:
                self._handles.discard(handle)
            task = loop.create_task(self._run(label, callback), name=label)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        handle = loop.call_later(seconds, fire)
        self._handles.add(handle)
        logger.debug(f"Timer {label!r} armed for {seconds:.1f}s")

    async def _run(self, label: str, callback: TimerCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("timer_callback_failed", extra={"timer.label": label})

    async def close(self) -> None:
        """Cancel armed timers and wait for in-flight callbacks to stop."""
        self._closed = True
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
