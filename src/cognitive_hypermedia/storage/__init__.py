"""Storage adapters for the resource engine."""

from cognitive_hypermedia.storage.adapter import (
    ListOptions,
    ListResult,
    RecordExistsError,
    SortOption,
    StorageAdapter,
    VersionedRecord,
)
from cognitive_hypermedia.storage.json_file import JsonFileStorageAdapter
from cognitive_hypermedia.storage.memory import InMemoryStorageAdapter

__all__ = [
    "InMemoryStorageAdapter",
    "JsonFileStorageAdapter",
    "ListOptions",
    "ListResult",
    "RecordExistsError",
    "SortOption",
    "StorageAdapter",
    "VersionedRecord",
]
