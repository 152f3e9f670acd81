"""Key-value store with ordered prefix scans and all-or-nothing batches.

The round keeps everything it owns here: the config singleton, the
proposal sequence counter, proposals keyed by big-endian id and votes
keyed by (proposal id, voter). Values are JSON-compatible.

Writes made inside ``batch()`` are staged and become visible to readers
of the same store immediately, but only reach committed state when the
block exits cleanly. An exception inside the block discards every
staged write. Nested batches join the outermost one.

MemoryKVStore keeps committed state in memory. JsonFileKVStore also
rewrites a JSON file on every committed batch (temp file + replace, so
a crash mid-write leaves the previous state intact).
"""

from __future__ import annotations

import copy
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

_DELETED = object()


class MemoryKVStore:
    """In-memory store. The reference implementation for tests and tools.

    Usage:
        store = MemoryKVStore()
        with store.batch():
            store.set("config", {...})
            store.set("proposal_seq", 1)
        for key, value in store.range("proposal/"):
            ...
    """

    def __init__(self, data: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self._pending: Optional[dict[str, Any]] = None

    def get(self, key: str, default: Any = None) -> Any:
        if self._pending is not None and key in self._pending:
            value = self._pending[key]
            return default if value is _DELETED else copy.deepcopy(value)
        if key in self._data:
            return copy.deepcopy(self._data[key])
        return default

    def has(self, key: str) -> bool:
        return self.get(key, _DELETED) is not _DELETED

    def set(self, key: str, value: Any) -> None:
        if self._pending is None:
            with self.batch():
                self.set(key, value)
            return
        self._pending[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        if self._pending is None:
            with self.batch():
                self.delete(key)
            return
        self._pending[key] = _DELETED

    def range(self, prefix: str = "") -> Iterator[tuple[str, Any]]:
        """Yield ``(key, value)`` for keys starting with ``prefix``, ascending.

        The key set is snapshotted when iteration starts; each call is an
        independent scan.
        """
        keys = {k for k in self._data if k.startswith(prefix)}
        if self._pending is not None:
            for k, v in self._pending.items():
                if not k.startswith(prefix):
                    continue
                if v is _DELETED:
                    keys.discard(k)
                else:
                    keys.add(k)
        for key in sorted(keys):
            yield key, self.get(key)

    @contextmanager
    def batch(self) -> Iterator[MemoryKVStore]:
        """Stage writes and commit them together, or not at all."""
        if self._pending is not None:
            yield self
            return
        self._pending = {}
        try:
            yield self
        except BaseException:
            self._pending = None
            raise
        changes, self._pending = self._pending, None
        if changes:
            self._commit(changes)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of committed state."""
        return copy.deepcopy(self._data)

    def _commit(self, changes: dict[str, Any]) -> None:
        for key, value in changes.items():
            if value is _DELETED:
                self._data.pop(key, None)
            else:
                self._data[key] = value


class JsonFileKVStore(MemoryKVStore):
    """Memory store mirrored to a JSON file after each committed batch.

    If the file write fails the in-memory state is left as it was before
    the batch, so memory and disk never disagree.
    """

    def __init__(self, storage_path: Path) -> None:
        super().__init__()
        self._storage_path = storage_path
        if storage_path.exists():
            with storage_path.open("r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError(f"Corrupt state file (expected object): {storage_path}")
            self._data = loaded

    def _commit(self, changes: dict[str, Any]) -> None:
        updated = dict(self._data)
        for key, value in changes.items():
            if value is _DELETED:
                updated.pop(key, None)
            else:
                updated[key] = value

        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(updated, f, sort_keys=True, ensure_ascii=False, indent=1)
                f.write("\n")
            tmp_path.replace(self._storage_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        self._data = updated
