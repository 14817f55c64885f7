"""Key/value blob storage for scheduler state.

Each logical structure (queue table, deferral ledger, mailbox) is stored as a
single blob under its own key. There are no transactions; callers serialize
access to a key themselves.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Protocol

from filelock import FileLock

from courier.errors import PersistenceError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")


class KeyValueStore(Protocol):
    """Interface for blob persistence."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. State is lost with the process."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(_normalize_key(key))

    def set(self, key: str, value: bytes) -> None:
        self._data[_normalize_key(key)] = bytes(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileKeyValueStore(KeyValueStore):
    """File-backed store, one ``<key>.json`` file per key.

    Writes are atomic (temp file, then rename) and serialized across
    processes with a lock file next to the state directory.
    """

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock = FileLock(str(self._root) + ".lock")

    @property
    def root(self) -> Path:
        return self._root

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_bytes()
            except OSError as e:
                raise PersistenceError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        target = self._path(key)
        try:
            with self._lock:
                self._root.mkdir(parents=True, exist_ok=True)
                with NamedTemporaryFile(
                    mode="wb",
                    delete=False,
                    dir=str(self._root),
                    prefix=f".{target.stem}.",
                    suffix=".tmp",
                ) as handle:
                    handle.write(value)
                    temp_path = Path(handle.name)
                temp_path.replace(target)
        except OSError as e:
            raise PersistenceError(f"Failed to write {target}: {e}") from e

    def _path(self, key: str) -> Path:
        return self._root / f"{_normalize_key(key)}.json"


def _normalize_key(key: str) -> str:
    text = str(key).strip().lower()
    if not text or not _KEY_PATTERN.match(text):
        raise ValueError(f"invalid storage key: {key!r}")
    return text
