"""In-process storage adapter.

Records live in a dict keyed by type then id. Each write bumps a per-record
integer version; an ``asyncio.Lock`` makes every primitive atomic with respect
to other coroutines on the same event loop.
"""

from __future__ import annotations

import asyncio
import copy

from cognitive_hypermedia.storage.adapter import (
    ListOptions,
    ListResult,
    Record,
    RecordExistsError,
    StorageAdapter,
    VersionedRecord,
    apply_list_options,
)


class InMemoryStorageAdapter(StorageAdapter):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, tuple[int, Record]]] = {}
        self._lock = asyncio.Lock()

    async def create(self, resource_type: str, resource_id: str, data: Record) -> str:
        async with self._lock:
            bucket = self._records.setdefault(resource_type, {})
            if resource_id in bucket:
                raise RecordExistsError(resource_type, resource_id)
            bucket[resource_id] = (1, copy.deepcopy(data))
            return "1"

    async def get(self, resource_type: str, resource_id: str) -> Record | None:
        found = await self.get_versioned(resource_type, resource_id)
        return found.data if found is not None else None

    async def get_versioned(
        self, resource_type: str, resource_id: str
    ) -> VersionedRecord | None:
        async with self._lock:
            entry = self._records.get(resource_type, {}).get(resource_id)
            if entry is None:
                return None
            version, data = entry
            return VersionedRecord(data=copy.deepcopy(data), version=str(version))

    async def update(self, resource_type: str, resource_id: str, data: Record) -> str:
        async with self._lock:
            bucket = self._records.get(resource_type, {})
            if resource_id not in bucket:
                raise KeyError(f"{resource_type}/{resource_id}")
            version = bucket[resource_id][0] + 1
            bucket[resource_id] = (version, copy.deepcopy(data))
            return str(version)

    async def compare_and_set(
        self, resource_type: str, resource_id: str, data: Record, expected_version: str
    ) -> bool:
        async with self._lock:
            bucket = self._records.get(resource_type, {})
            entry = bucket.get(resource_id)
            if entry is None or str(entry[0]) != expected_version:
                return False
            bucket[resource_id] = (entry[0] + 1, copy.deepcopy(data))
            return True

    async def delete(self, resource_type: str, resource_id: str) -> bool:
        async with self._lock:
            bucket = self._records.get(resource_type, {})
            return bucket.pop(resource_id, None) is not None

    async def list(self, resource_type: str, options: ListOptions | None = None) -> ListResult:
        async with self._lock:
            records = [
                copy.deepcopy(data) for _, data in self._records.get(resource_type, {}).values()
            ]
        return apply_list_options(records, options)

    async def list_types(self) -> list[str]:
        async with self._lock:
            return sorted(t for t, bucket in self._records.items() if bucket)
