"""Tests for key/value blob storage."""

import pytest

from courier.errors import PersistenceError
from courier.scheduling.persistence import load_json, save_json
from courier.storage import FileKeyValueStore, MemoryKeyValueStore


class TestMemoryKeyValueStore:
    """Tests for the in-memory store."""

    def test_get_missing(self):
        assert MemoryKeyValueStore().get("queues") is None

    def test_set_and_get(self):
        store = MemoryKeyValueStore()
        store.set("queues", b"{}")

        assert store.get("queues") == b"{}"
        assert store.keys() == ["queues"]

    def test_rejects_bad_keys(self):
        with pytest.raises(ValueError):
            MemoryKeyValueStore().set("../escape", b"")


class TestFileKeyValueStore:
    """Tests for the file-backed store."""

    def test_round_trip_creates_directory(self, tmp_path):
        root = tmp_path / "state"
        store = FileKeyValueStore(root)

        store.set("deferred-posts", b"[]")

        assert (root / "deferred-posts.json").read_bytes() == b"[]"
        assert store.get("deferred-posts") == b"[]"

    def test_get_missing(self, tmp_path):
        assert FileKeyValueStore(tmp_path / "state").get("queues") is None

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        root = tmp_path / "state"
        store = FileKeyValueStore(root)

        store.set("queues", b"1")
        store.set("queues", b"2")

        assert store.get("queues") == b"2"
        assert sorted(p.name for p in root.iterdir()) == ["queues.json"]

    def test_write_failure_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / "state"
        blocker.write_text("not a directory")
        store = FileKeyValueStore(blocker)

        with pytest.raises(PersistenceError):
            store.set("queues", b"{}")


class TestJsonHelpers:
    """Tests for save_json/load_json."""

    def test_round_trip(self):
        store = MemoryKeyValueStore()

        assert save_json(store, "queues", {"daily": {"messages": ["é"]}}) is True
        assert load_json(store, "queues") == {"daily": {"messages": ["é"]}}

    def test_save_failure_is_swallowed(self, tmp_path, caplog):
        blocker = tmp_path / "state"
        blocker.write_text("not a directory")

        assert save_json(FileKeyValueStore(blocker), "queues", {}) is False
        assert "state_persist_failed" in caplog.text

    def test_unserializable_payload_is_swallowed(self):
        assert save_json(MemoryKeyValueStore(), "queues", {"bad": object()}) is False

    def test_corrupt_blob_loads_as_none(self, caplog):
        store = MemoryKeyValueStore({"queues": b"\xff\xfe not json"})

        assert load_json(store, "queues") is None
        assert "state_decode_failed" in caplog.text
