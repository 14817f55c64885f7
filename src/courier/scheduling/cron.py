"""Cron schedule evaluation backed by croniter."""

import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from croniter import CroniterError, croniter

from courier.errors import InvalidScheduleError

logger = logging.getLogger(__name__)


class CronSchedule:
    """A compiled cron expression.

    Expressions are evaluated in ``timezone`` and results are returned in UTC,
    so "0 9 * * *" means 9 AM local time in that zone.
    """

    def __init__(self, source: str, timezone: str = "UTC") -> None:
        self._source = source.strip()
        if not self._source:
            raise InvalidScheduleError("Schedule is empty")

        try:
            self._tz = ZoneInfo(timezone)
        except Exception:
            logger.warning("invalid_timezone", extra={"schedule.timezone": timezone})
            self._tz = ZoneInfo("UTC")

        # Expressions like "0 0 31 2 *" parse but never occur
        try:
            croniter(self._source, datetime.now(self._tz)).get_next(datetime)
        except Exception as e:
            raise InvalidScheduleError(f"Invalid cron expression: {e}") from e

    @property
    def source(self) -> str:
        return self._source

    def next_after(self, moment: datetime) -> datetime:
        """Return the first occurrence strictly after ``moment``, in UTC.

        Raises:
            InvalidScheduleError: If croniter finds no occurrence.
        """
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        local = moment.astimezone(self._tz)
        try:
            next_local = croniter(self._source, local).get_next(datetime)
        except CroniterError as e:
            raise InvalidScheduleError(f"No next occurrence: {e}") from e
        return next_local.astimezone(UTC)

    def __repr__(self) -> str:
        return f"CronSchedule({self._source!r}, timezone={self._tz.key!r})"
