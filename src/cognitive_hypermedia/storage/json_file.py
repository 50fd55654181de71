"""JSON-file storage adapter.

All records are kept in one JSON document::

    {"<type>": {"<id>": {"version": 3, "data": {...}}}}

Each primitive loads, modifies and saves the whole document under a thread
lock, so it is atomic within one process only; separate processes sharing
the file are not coordinated. Saves go through a temporary file and
``os.replace`` so a crash never leaves a truncated document behind. File IO runs
in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from cognitive_hypermedia.storage.adapter import (
    ListOptions,
    ListResult,
    Record,
    RecordExistsError,
    StorageAdapter,
    VersionedRecord,
    apply_list_options,
)

logger = logging.getLogger(__name__)

Document = dict[str, dict[str, dict[str, Any]]]


class JsonFileStorageAdapter(StorageAdapter):
    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load_unlocked(self) -> Document:
        if not self.path.exists():
            return {}
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path}: expected a JSON object at top level")
        return raw

    def _save_unlocked(self, document: Document) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        os.replace(tmp, self.path)

    def _create(self, resource_type: str, resource_id: str, data: Record) -> str:
        with self._lock:
            document = self._load_unlocked()
            bucket = document.setdefault(resource_type, {})
            if resource_id in bucket:
                raise RecordExistsError(resource_type, resource_id)
            bucket[resource_id] = {"version": 1, "data": data}
            self._save_unlocked(document)
            return "1"

    def _get_versioned(self, resource_type: str, resource_id: str) -> VersionedRecord | None:
        with self._lock:
            entry = self._load_unlocked().get(resource_type, {}).get(resource_id)
        if entry is None:
            return None
        return VersionedRecord(data=entry["data"], version=str(entry["version"]))

    def _write(
        self,
        resource_type: str,
        resource_id: str,
        data: Record,
        expected_version: str | None,
    ) -> str | None:
        with self._lock:
            document = self._load_unlocked()
            entry = document.get(resource_type, {}).get(resource_id)
            if entry is None:
                return None
            if expected_version is not None and str(entry["version"]) != expected_version:
                return None
            version = int(entry["version"]) + 1
            document[resource_type][resource_id] = {"version": version, "data": data}
            self._save_unlocked(document)
            return str(version)

    def _delete(self, resource_type: str, resource_id: str) -> bool:
        with self._lock:
            document = self._load_unlocked()
            bucket = document.get(resource_type, {})
            if resource_id not in bucket:
                return False
            del bucket[resource_id]
            self._save_unlocked(document)
            return True

    def _records(self, resource_type: str) -> list[Record]:
        with self._lock:
            bucket = self._load_unlocked().get(resource_type, {})
        return [entry["data"] for entry in bucket.values()]

    def _types(self) -> list[str]:
        with self._lock:
            document = self._load_unlocked()
        return sorted(t for t, bucket in document.items() if bucket)

    async def create(self, resource_type: str, resource_id: str, data: Record) -> str:
        return await asyncio.to_thread(self._create, resource_type, resource_id, data)

    async def get(self, resource_type: str, resource_id: str) -> Record | None:
        found = await self.get_versioned(resource_type, resource_id)
        return found.data if found is not None else None

    async def get_versioned(
        self, resource_type: str, resource_id: str
    ) -> VersionedRecord | None:
        return await asyncio.to_thread(self._get_versioned, resource_type, resource_id)

    async def update(self, resource_type: str, resource_id: str, data: Record) -> str:
        version = await asyncio.to_thread(self._write, resource_type, resource_id, data, None)
        if version is None:
            raise KeyError(f"{resource_type}/{resource_id}")
        return version

    async def compare_and_set(
        self, resource_type: str, resource_id: str, data: Record, expected_version: str
    ) -> bool:
        version = await asyncio.to_thread(
            self._write, resource_type, resource_id, data, expected_version
        )
        if version is None:
            logger.debug(
                "Conditional write rejected",
                extra={"resource_type": resource_type, "resource_id": resource_id},
            )
        return version is not None

    async def delete(self, resource_type: str, resource_id: str) -> bool:
        return await asyncio.to_thread(self._delete, resource_type, resource_id)

    async def list(self, resource_type: str, options: ListOptions | None = None) -> ListResult:
        records = await asyncio.to_thread(self._records, resource_type)
        return apply_list_options(records, options)

    async def list_types(self) -> list[str]:
        return await asyncio.to_thread(self._types)
