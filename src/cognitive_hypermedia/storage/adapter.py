"""The persistence contract the engine depends on.

Adapters store flat JSON-safe records keyed by ``(type, id)``. Besides plain
CRUD they must provide an atomic conditional write (:meth:`StorageAdapter.compare_and_set`)
keyed by the opaque version token returned from :meth:`StorageAdapter.get_versioned`;
a last-write-wins adapter cannot keep state transitions consistent.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

Record = dict[str, Any]


class RecordExistsError(Exception):
    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(f"Record {resource_type}/{resource_id} already exists")
        self.resource_type = resource_type
        self.resource_id = resource_id


@dataclass(frozen=True, slots=True)
class SortOption:
    field: str
    direction: Literal["asc", "desc"] = "asc"


@dataclass(frozen=True, slots=True)
class ListOptions:
    filter: Mapping[str, object] = field(default_factory=dict)
    page: int = 1
    page_size: int = 10
    sort: SortOption | None = None


@dataclass(frozen=True, slots=True)
class ListResult:
    items: list[Record]
    total_items: int


@dataclass(frozen=True, slots=True)
class VersionedRecord:
    data: Record
    version: str


class StorageAdapter(ABC):
    """Async persistence primitives for resource records."""

    @abstractmethod
    async def create(self, resource_type: str, resource_id: str, data: Record) -> str:
        """Store a new record and return its version.

        Raises:
            RecordExistsError: if a record with this key exists.
        """

    @abstractmethod
    async def get(self, resource_type: str, resource_id: str) -> Record | None: ...

    @abstractmethod
    async def get_versioned(
        self, resource_type: str, resource_id: str
    ) -> VersionedRecord | None: ...

    @abstractmethod
    async def update(self, resource_type: str, resource_id: str, data: Record) -> str:
        """Unconditionally replace a record; raises ``KeyError`` if absent."""

    @abstractmethod
    async def compare_and_set(
        self, resource_type: str, resource_id: str, data: Record, expected_version: str
    ) -> bool:
        """Replace a record only if its version is still ``expected_version``.

        Returns False when the record changed or disappeared since it was read.
        """

    @abstractmethod
    async def delete(self, resource_type: str, resource_id: str) -> bool:
        """Remove a record; returns whether one existed."""

    @abstractmethod
    async def list(self, resource_type: str, options: ListOptions | None = None) -> ListResult: ...

    @abstractmethod
    async def list_types(self) -> list[str]: ...

    async def exists(self, resource_type: str, resource_id: str) -> bool:
        return await self.get(resource_type, resource_id) is not None


def values_equal(a: object, b: object) -> bool:
    """JSON equality: unlike ``==``, ``True`` never equals ``1``."""

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, list | tuple) and isinstance(b, list | tuple):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def matches_filter(record: Mapping[str, object], criteria: Mapping[str, object]) -> bool:
    return all(
        key in record and values_equal(record[key], value) for key, value in criteria.items()
    )


def _sort_key(value: object) -> tuple[str, Any]:
    # Group by kind so mixed-type columns never compare across types.
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int | float):
        return ("number", value)
    if isinstance(value, Mapping | list | tuple):
        return ("json", json.dumps(value, sort_keys=True, default=str))
    return (type(value).__name__, value)


def apply_list_options(records: Iterable[Record], options: ListOptions | None) -> ListResult:
    """Filter, sort and paginate ``records`` in memory.

    ``records`` must be in insertion order; the default ordering is ascending
    ``createdAt`` with ties kept in insertion order. Records lacking the sort
    field always come last.
    """

    opts = options or ListOptions()
    matching = [r for r in records if matches_filter(r, opts.filter)]

    sort = opts.sort or SortOption(field="createdAt")
    present = [r for r in matching if r.get(sort.field) is not None]
    absent = [r for r in matching if r.get(sort.field) is None]
    present.sort(key=lambda r: _sort_key(r[sort.field]), reverse=sort.direction == "desc")
    ordered = present + absent

    start = (opts.page - 1) * opts.page_size
    return ListResult(items=ordered[start : start + opts.page_size], total_items=len(ordered))
