"""The resource engine.

:class:`CognitiveStore` owns a :class:`StateMachineRegistry` and talks to a
pluggable :class:`StorageAdapter`. It never caches records: every operation
reads from the adapter before it writes, and the two mutating paths
(:meth:`CognitiveStore.update` and :meth:`CognitiveStore.perform_action`) commit
with compare-and-set, re-running read-validate-write when another writer got
there first.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from cognitive_hypermedia.core.config import EngineConfig
from cognitive_hypermedia.core.errors import (
    AdapterFailureError,
    CognitiveStoreError,
    ConcurrentModificationError,
    InvalidActionError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
)
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.resource import (
    CREATED_AT_KEY,
    HISTORY_KEY,
    ID_KEY,
    STATUS_KEY,
    UPDATED_AT_KEY,
    Collection,
    PaginationInfo,
    Resource,
    normalize_properties,
)
from cognitive_hypermedia.core.statemachine import (
    ActionDefinition,
    StateMachine,
    StateMachineDefinition,
)
from cognitive_hypermedia.storage.adapter import ListOptions, Record, SortOption, StorageAdapter

logger = logging.getLogger(__name__)

# "state" is accepted as a spelling of "status" and is never stored.
STATE_ALIAS_KEY = "state"
ENGINE_KEYS = frozenset(
    {ID_KEY, STATUS_KEY, STATE_ALIAS_KEY, CREATED_AT_KEY, UPDATED_AT_KEY, HISTORY_KEY}
)


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True, slots=True)
class CollectionOptions:
    filter: Mapping[str, object] = field(default_factory=dict)
    page: int = 1
    page_size: int | None = None
    sort: SortOption | None = None


class CognitiveStore:
    """Create, read, update, delete and transition state-machine governed resources."""

    def __init__(
        self,
        storage: StorageAdapter,
        registry: StateMachineRegistry | None = None,
        *,
        config: EngineConfig | None = None,
    ) -> None:
        self._storage = storage
        self.registry = registry if registry is not None else StateMachineRegistry()
        self.config = config if config is not None else EngineConfig()

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    def register_state_machine(
        self, resource_type: str, definition: StateMachineDefinition | Mapping[str, Any]
    ) -> StateMachine:
        return self.registry.register(resource_type, definition)

    @contextmanager
    def _adapter_call(
        self, operation: str, resource_type: str, resource_id: str | None = None
    ) -> Iterator[None]:
        try:
            yield
        except CognitiveStoreError:
            raise
        except Exception as e:
            target = resource_type if resource_id is None else f"{resource_type}/{resource_id}"
            logger.error(
                "Storage operation failed",
                exc_info=True,
                extra={"operation": operation, "resource_type": resource_type, "resource_id": resource_id},
            )
            raise AdapterFailureError(
                f"Storage {operation} failed for {target}: {e}",
                operation=operation,
                type=resource_type,
                id=resource_id,
                cause=repr(e),
            ) from e

    async def create(self, resource_type: str, properties: Mapping[str, Any] | None = None) -> str:
        """Create a resource in its type's initial state and return its id."""

        resource = await self.create_resource(resource_type, properties)
        return resource.id

    async def create_resource(
        self, resource_type: str, properties: Mapping[str, Any] | None = None
    ) -> Resource:
        """Like :meth:`create` but returns the stored resource.

        Engine-owned keys in ``properties`` (``id``, ``status``/``state``,
        timestamps, history) are dropped; the id is always generated here.
        """

        machine = self.registry.resolve(resource_type)
        values = normalize_properties(
            {k: v for k, v in (properties or {}).items() if k not in ENGINE_KEYS}
        )

        resource_id = str(uuid.uuid4())
        now = _utc_now_iso()
        record: Record = {
            ID_KEY: resource_id,
            **values,
            STATUS_KEY: machine.initial_state,
            CREATED_AT_KEY: now,
            UPDATED_AT_KEY: now,
            HISTORY_KEY: [],
        }

        with self._adapter_call("create", resource_type, resource_id):
            await self._storage.create(resource_type, resource_id, record)

        logger.info(
            "Resource created",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "status": machine.initial_state,
            },
        )
        return Resource(resource_type, record, machine)

    async def get(self, resource_type: str, resource_id: str) -> Resource | None:
        """Return the resource, or None when it does not exist."""

        machine = self.registry.resolve(resource_type)
        with self._adapter_call("get", resource_type, resource_id):
            data = await self._storage.get(resource_type, resource_id)
        if data is None:
            return None
        return Resource(resource_type, data, machine)

    async def update(
        self, resource_type: str, resource_id: str, properties: Mapping[str, Any]
    ) -> Resource:
        """Replace the given top-level properties of a resource.

        Status is not writable here; use :meth:`perform_action`.

        Raises:
            InvalidRequestError: if ``properties`` tries to set the status.
            NotFoundError: if the resource does not exist.
            ConcurrentModificationError: if every compare-and-set attempt lost.
        """

        machine = self.registry.resolve(resource_type)
        if STATUS_KEY in properties or STATE_ALIAS_KEY in properties:
            raise InvalidRequestError(
                f"Status of {resource_type}/{resource_id} can only change through an action",
                type=resource_type,
                id=resource_id,
            )
        values = normalize_properties(
            {k: v for k, v in properties.items() if k not in ENGINE_KEYS}
        )

        def apply(current: Record) -> Record:
            return {**current, **values, UPDATED_AT_KEY: _utc_now_iso()}

        data = await self._compare_and_set_loop(resource_type, resource_id, "update", apply)
        logger.info(
            "Resource updated",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "fields": sorted(values),
            },
        )
        return Resource(resource_type, data, machine)

    async def delete(self, resource_type: str, resource_id: str) -> bool:
        """Delete a resource. Deleting a missing resource is not an error.

        Returns:
            True if a record was removed.
        """

        self.registry.resolve(resource_type)
        with self._adapter_call("delete", resource_type, resource_id):
            removed = await self._storage.delete(resource_type, resource_id)
        logger.info(
            "Resource deleted" if removed else "Resource already absent",
            extra={"resource_type": resource_type, "resource_id": resource_id},
        )
        return removed

    async def get_collection(
        self, resource_type: str, options: CollectionOptions | None = None
    ) -> Collection:
        machine = self.registry.resolve(resource_type)
        opts = options or CollectionOptions()
        page_size = opts.page_size if opts.page_size is not None else self.config.default_page_size

        if opts.page < 1:
            raise InvalidRequestError("page must be >= 1", page=opts.page)
        if not 1 <= page_size <= self.config.max_page_size:
            raise InvalidRequestError(
                f"pageSize must be between 1 and {self.config.max_page_size}",
                page_size=page_size,
            )
        criteria = normalize_properties(opts.filter)

        with self._adapter_call("list", resource_type):
            result = await self._storage.list(
                resource_type,
                ListOptions(filter=criteria, page=opts.page, page_size=page_size, sort=opts.sort),
            )

        return Collection(
            item_type=resource_type,
            items=tuple(Resource(resource_type, data, machine) for data in result.items),
            pagination=PaginationInfo(
                page=opts.page, page_size=page_size, total_items=result.total_items
            ),
            filters=criteria,
        )

    async def perform_action(
        self,
        resource_type: str,
        resource_id: str,
        action: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Resource:
        """Apply ``action`` to a resource and move it to the transition's target state.

        The payload is checked against the action's declared parameters (if any)
        and merged into the resource's properties in the same write as the
        status change. On any failure the stored record is left untouched.

        Raises:
            UnknownTypeError: no state machine for ``resource_type``.
            NotFoundError: the resource does not exist.
            InvalidStateError: the stored status is not a state of the machine.
            InvalidActionError: ``action`` has no transition from the current state.
            InvalidRequestError: the payload is rejected.
            ConcurrentModificationError: every compare-and-set attempt lost.
        """

        machine = self.registry.resolve(resource_type)
        requested = dict(payload or {})
        reserved = sorted(set(requested) & ENGINE_KEYS)
        if reserved:
            raise InvalidRequestError(
                f"Action payload may not set engine-managed fields: {', '.join(reserved)}",
                fields=reserved,
            )

        def apply(current: Record) -> Record:
            status = current.get(STATUS_KEY)
            if not isinstance(status, str) or not machine.has_state(status):
                raise InvalidStateError(resource_type, resource_id, status)
            target = machine.target(status, action)
            if target is None:
                raise InvalidActionError(resource_type, resource_id, action, status)

            definition = machine.allowed_actions(status)[action]
            values = normalize_properties(definition.validate_payload(requested))
            values = {k: v for k, v in values.items() if k not in ENGINE_KEYS}

            now = _utc_now_iso()
            history = current.get(HISTORY_KEY)
            entries = list(history) if isinstance(history, list) else []
            entries.append({"from": status, "to": target, "action": action, "timestamp": now})
            return {
                **current,
                **values,
                STATUS_KEY: target,
                UPDATED_AT_KEY: now,
                HISTORY_KEY: entries,
            }

        data = await self._compare_and_set_loop(resource_type, resource_id, action, apply)
        last = data[HISTORY_KEY][-1]
        logger.info(
            "Resource transitioned",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "action": action,
                "from_state": last["from"],
                "to_state": last["to"],
            },
        )
        return Resource(resource_type, data, machine)

    async def allowed_actions(
        self, resource_type: str, resource_id: str
    ) -> dict[str, ActionDefinition]:
        """Actions the resource's current state advertises."""

        machine = self.registry.resolve(resource_type)
        with self._adapter_call("get", resource_type, resource_id):
            data = await self._storage.get(resource_type, resource_id)
        if data is None:
            raise NotFoundError(resource_type, resource_id)
        status = data.get(STATUS_KEY)
        if not isinstance(status, str) or not machine.has_state(status):
            raise InvalidStateError(resource_type, resource_id, status)
        return machine.allowed_actions(status)

    async def resource_types(self) -> list[str]:
        """Registered types plus any type the storage already holds records for."""

        with self._adapter_call("list_types", "*"):
            stored = await self._storage.list_types()
        return sorted(set(stored) | set(self.registry.types()))

    async def _compare_and_set_loop(
        self,
        resource_type: str,
        resource_id: str,
        operation: str,
        apply: Callable[[Record], Record],
    ) -> Record:
        attempts = 1 + self.config.max_retries
        for attempt in range(1, attempts + 1):
            with self._adapter_call("get", resource_type, resource_id):
                current = await self._storage.get_versioned(resource_type, resource_id)
            if current is None:
                raise NotFoundError(resource_type, resource_id)

            data = apply(current.data)

            with self._adapter_call("compare_and_set", resource_type, resource_id):
                written = await self._storage.compare_and_set(
                    resource_type, resource_id, data, current.version
                )
            if written:
                return data

            logger.debug(
                "Compare-and-set conflict",
                extra={
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "operation": operation,
                    "attempt": attempt,
                },
            )
            if attempt < attempts and self.config.retry_backoff_seconds:
                await asyncio.sleep(self.config.retry_backoff_seconds)

        logger.warning(
            "Giving up after repeated compare-and-set conflicts",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "operation": operation,
                "attempts": attempts,
            },
        )
        raise ConcurrentModificationError(resource_type, resource_id, attempts)
