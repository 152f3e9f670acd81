"""Persistence — key-value state store and append-only audit log."""

from qfround.persistence.event_log import EventKind, EventLog, EventRecord
from qfround.persistence.kv_store import JsonFileKVStore, MemoryKVStore

__all__ = [
    "EventKind",
    "EventLog",
    "EventRecord",
    "JsonFileKVStore",
    "MemoryKVStore",
]
