"""Service layer helpers (storage, persistence, catalog transport, settings)."""

from .persistence import PersistenceSync, SyncPhase
from .storage import JsonFileStorage, MemoryStorage, StorageBackend

__all__ = [
    "JsonFileStorage",
    "MemoryStorage",
    "PersistenceSync",
    "StorageBackend",
    "SyncPhase",
]
