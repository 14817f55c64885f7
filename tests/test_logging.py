"""Tests for logging configuration and utilities."""

import json
import logging
import os
import time

import pytest

from courier.logging import (
    NOISY_LOGGERS,
    ComponentFormatter,
    JSONLHandler,
    configure_logging,
    prune_old_logs,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def _record(name: str, msg: str, **extra) -> logging.LogRecord:
    logger = logging.getLogger(name)
    return logger.makeRecord(
        name, logging.INFO, __file__, 1, msg, (), None, extra=extra
    )


class TestPruneOldLogs:
    """Tests for prune_old_logs."""

    def test_missing_directory(self, tmp_path):
        assert prune_old_logs(tmp_path / "missing") == 0

    def test_deletes_only_old_jsonl(self, tmp_path):
        old = tmp_path / "2020-01-01.jsonl"
        fresh = tmp_path / "2026-01-12.jsonl"
        other = tmp_path / "notes.txt"
        for path in (old, fresh, other):
            path.write_text("{}\n")
        stale = time.time() - 30 * 86400
        os.utime(old, (stale, stale))
        os.utime(other, (stale, stale))

        assert prune_old_logs(tmp_path, retention_days=7) == 1
        assert not old.exists()
        assert fresh.exists()
        assert other.exists()


class TestJSONLHandler:
    """Tests for JSONLHandler."""

    def test_writes_structured_entry(self, tmp_path):
        handler = JSONLHandler(tmp_path)
        handler.emit(
            _record(
                "courier.scheduling.queues",
                "queue_created",
                **{"queue.name": "daily"},
            )
        )
        handler.close()

        (log_file,) = tmp_path.glob("*.jsonl")
        entry = json.loads(log_file.read_text().strip())
        assert entry["component"] == "scheduling"
        assert entry["logger"] == "courier.scheduling.queues"
        assert entry["message"] == "queue_created"
        assert entry["level"] == "INFO"
        assert entry["extra"] == {"queue.name": "daily"}

    def test_entry_without_extra(self, tmp_path):
        handler = JSONLHandler(tmp_path)
        handler.emit(_record("uvicorn.error", "started"))
        handler.close()

        (log_file,) = tmp_path.glob("*.jsonl")
        entry = json.loads(log_file.read_text().strip())
        assert entry["component"] == "uvicorn"
        assert "extra" not in entry


class TestComponentFormatter:
    def test_appends_extra_fields(self):
        formatter = ComponentFormatter("%(component)s | %(message)s")

        text = formatter.format(
            _record("courier.server.app", "request_failed", **{"error.code": "x"})
        )

        assert text == "server | request_failed error.code=x"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_from_env(self, monkeypatch, restore_logging):
        monkeypatch.setenv("COURIER_LOG_LEVEL", "debug")

        configure_logging()

        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, restore_logging):
        configure_logging(level="chatty")

        assert logging.getLogger().level == logging.INFO

    def test_noisy_loggers_quieted(self, restore_logging):
        configure_logging(level="DEBUG")

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_file_logging_under_courier_home(self, courier_home, restore_logging):
        configure_logging(level="INFO", log_to_file=True)
        logging.getLogger("courier.test").info("hello_file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        (log_file,) = (courier_home / "logs").glob("*.jsonl")
        assert "hello_file" in log_file.read_text()
