"""Persistent key/value storage."""

from courier.storage.kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
]
