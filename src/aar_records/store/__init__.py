"""In-memory record store."""

from aar_records.store.memory import (
    RecordAlreadyExistsError,
    RecordNotFoundError,
    RecordStats,
    RecordStore,
    RecordStoreError,
)

__all__ = [
    "RecordAlreadyExistsError",
    "RecordNotFoundError",
    "RecordStats",
    "RecordStore",
    "RecordStoreError",
]
