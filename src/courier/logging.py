"""Logging setup for courier entry points.

``courier serve`` and the other commands call ``configure_logging()`` once
before doing any work.

Log messages are event names such as ``queue_created``. Details travel as
dotted ``extra`` keys (``queue.name``, ``deferral.id``). The console output
appends them as ``key=value`` pairs and the JSONL files keep them as an
object, so a day of deliveries can be filtered with jq.

Level guide:
- DEBUG: stale timer ticks and other skipped work
- INFO: deliveries, lifecycle of queues and deferrals, restores
- WARNING: clamped re-arms, malformed persisted entries
- ERROR: persistence and delivery failures
"""

import json
import logging
import os
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

DEFAULT_LOG_RETENTION_DAYS = 7

# Third-party loggers pinned to WARNING
NOISY_LOGGERS = ["httpx", "httpcore", "uvicorn.access"]

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Anything on a record beyond these arrived through ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "component", "taskName"}


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    suffix: str = ".jsonl",
) -> int:
    """Remove ``*<suffix>`` files last modified before the retention window.

    Returns the number of files removed.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = time.time() - retention_days * 86400
    removed = 0
    for path in logs_dir.glob(f"*{suffix}"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            # Raced with another process; the next rotation retries.
            continue
    return removed


def _component(name: str) -> str:
    head, _, rest = name.partition(".")
    if head == "courier" and rest:
        return rest.split(".", 1)[0]
    return head


def record_extra(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields a caller attached with ``extra=``."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JSONLHandler(logging.Handler):
    """Append one JSON object per record to ``<logs_dir>/YYYY-MM-DD.jsonl``.

    A new file is opened when the UTC date changes, and expired files are
    pruned at that point.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        logs_dir.mkdir(parents=True, exist_ok=True)
        self._logs_dir = logs_dir
        self._retention_days = retention_days
        self._day: str | None = None
        self._stream: TextIO | None = None

    def _stream_for(self, day: str) -> TextIO:
        if self._stream is None or day != self._day:
            if self._stream is not None:
                self._stream.close()
            self._stream = (self._logs_dir / f"{day}.jsonl").open(
                "a", encoding="utf-8"
            )
            self._day = day
            prune_old_logs(self._logs_dir, self._retention_days)
        return self._stream

    def _entry(self, record: logging.LogRecord, now: datetime) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "ts": now.isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = (
                self.formatter or logging.Formatter()
            ).formatException(record.exc_info)
        extra = record_extra(record)
        if extra:
            entry["extra"] = extra
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            now = datetime.now(UTC)
            stream = self._stream_for(now.strftime("%Y-%m-%d"))
            stream.write(json.dumps(self._entry(record, now), default=str) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Expose ``%(component)s`` and append extra fields.

    ``courier.scheduling.queues`` becomes ``scheduling``; loggers outside the
    package keep their first segment (``uvicorn.error`` -> ``uvicorn``).
    """

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        text = super().format(record)
        pairs = [f"{key}={value}" for key, value in record_extra(record).items()]
        return " ".join([text, *pairs])


def _resolve_level(level: str | None) -> int:
    name = (level or os.environ.get("COURIER_LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name if name in _LEVELS else "INFO")


def _console_handler(use_rich: bool) -> logging.Handler:
    if not use_rich:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        return handler

    from rich.logging import RichHandler

    handler = RichHandler(show_path=False, markup=False, rich_tracebacks=False)
    handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Install courier's handlers on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to ``COURIER_LOG_LEVEL``
            and then INFO; unknown names fall back to INFO.
        use_rich: Render console output with rich (used by ``courier serve``).
        log_to_file: Also write JSONL files under ``$COURIER_HOME/logs``.
    """
    from courier.config.paths import get_logs_path

    log_level = _resolve_level(level)
    handlers = [_console_handler(use_rich)]
    if log_to_file:
        file_handler = JSONLHandler(get_logs_path())
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if use_rich:
        # uvicorn installs its own handlers unless told otherwise
        for name in ("uvicorn", "uvicorn.error"):
            uvicorn_logger = logging.getLogger(name)
            uvicorn_logger.handlers = handlers
            uvicorn_logger.propagate = False
