"""Read-only views over persisted resources.

A :class:`Resource` wraps one stored record together with the state machine of
its type, so its representation can describe which actions are legal next.
A :class:`Collection` is a page of resources of one type plus the total count
of everything that matched.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError
from typing_extensions import TypeAliasType

from cognitive_hypermedia.core.errors import InvalidRequestError
from cognitive_hypermedia.core.statemachine import ActionDefinition, StateMachine

PropertyValue = TypeAliasType(
    "PropertyValue",
    "Union[str, bool, int, float, datetime, None, list[PropertyValue], dict[str, PropertyValue]]",
)

_PROPERTIES: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, PropertyValue])

# Keys the engine owns on every stored record.
ID_KEY = "id"
STATUS_KEY = "status"
CREATED_AT_KEY = "createdAt"
UPDATED_AT_KEY = "updatedAt"
HISTORY_KEY = "stateHistory"


def normalize_properties(values: Mapping[str, Any]) -> dict[str, Any]:
    """Validate property values and convert them to their JSON-safe form.

    Timestamps become ISO-8601 strings; anything that is not a string, number,
    boolean, null, timestamp, list or string-keyed map is rejected.
    """

    try:
        validated = _PROPERTIES.validate_python(dict(values))
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidRequestError(
            "Unsupported property values: " + ", ".join(fields or ["<properties>"]),
            fields=fields,
        ) from e
    return _PROPERTIES.dump_python(validated, mode="json")


class Resource:
    """Immutable snapshot of one stored resource."""

    def __init__(
        self,
        resource_type: str,
        record: Mapping[str, Any],
        machine: StateMachine | None = None,
    ) -> None:
        self._type = resource_type
        self._record: dict[str, Any] = copy.deepcopy(dict(record))
        self._machine = machine

    def __repr__(self) -> str:
        return f"Resource(type={self._type!r}, id={self.id!r}, status={self.status!r})"

    @property
    def type(self) -> str:
        return self._type

    @property
    def id(self) -> str:
        return str(self._record.get(ID_KEY, ""))

    @property
    def status(self) -> str | None:
        value = self._record.get(STATUS_KEY)
        return value if isinstance(value, str) else None

    @property
    def properties(self) -> Mapping[str, Any]:
        return MappingProxyType(
            {k: v for k, v in self._record.items() if k not in (ID_KEY, STATUS_KEY)}
        )

    def get_property(self, key: str, default: Any = None) -> Any:
        if key not in self._record:
            return default
        return copy.deepcopy(self._record[key])

    @property
    def history(self) -> list[dict[str, Any]]:
        raw = self._record.get(HISTORY_KEY)
        return copy.deepcopy(raw) if isinstance(raw, list) else []

    @property
    def allowed_actions(self) -> dict[str, ActionDefinition]:
        """Actions the current state advertises; empty for undefined states."""

        if self._machine is None or self.status is None:
            return {}
        return self._machine.allowed_actions(self.status)

    @property
    def links(self) -> list[dict[str, str]]:
        links = [{"rel": "self", "href": f"/{self._type}/{self.id}"}]
        for name, value in self._record.items():
            if name != ID_KEY and name.endswith("Id") and len(name) > 2:
                if isinstance(value, str) and value:
                    related = name[:-2]
                    links.append(
                        {"rel": related, "href": f"/{related}/{value}", "title": f"Related {related}"}
                    )
        return links

    def to_record(self) -> dict[str, Any]:
        return copy.deepcopy(self._record)

    def to_json(self, *, include_actions: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self._type,
            "id": self.id,
            "status": self.status,
            "properties": copy.deepcopy(dict(self.properties)),
        }
        if include_actions:
            out["actions"] = self._actions_json()
            out["state"] = self._state_json()
        out["links"] = self.links
        return out

    def _actions_json(self) -> dict[str, dict[str, Any]]:
        actions: dict[str, dict[str, Any]] = {}
        for name, action in self.allowed_actions.items():
            entry = action.model_dump(mode="json", by_alias=True, exclude_none=True)
            if self._machine is not None and self.status is not None:
                target = self._machine.target(self.status, name)
                if target is not None:
                    entry["target"] = target
            actions[name] = entry
        return actions

    def _state_json(self) -> dict[str, Any]:
        status = self.status
        state: dict[str, Any] = {"current": status, "history": self.history}
        if self._machine is None or status is None or not self._machine.has_state(status):
            state["defined"] = False
            state["allowedTransitions"] = []
            return state
        definition = self._machine.state(status)
        if definition is not None and definition.description:
            state["description"] = definition.description
        state["defined"] = True
        state["terminal"] = self._machine.is_terminal(status)
        state["allowedTransitions"] = sorted(self._machine.transitions_from(status))
        return state


@dataclass(frozen=True, slots=True)
class PaginationInfo:
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.page_size else 0

    def to_json(self) -> dict[str, int]:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True, slots=True)
class Collection:
    """One page of resources of a single type."""

    item_type: str
    items: tuple[Resource, ...]
    pagination: PaginationInfo
    filters: Mapping[str, object] = field(default_factory=dict)

    @property
    def total_items(self) -> int:
        return self.pagination.total_items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.items)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": "collection",
            "itemType": self.item_type,
            "items": [item.to_json() for item in self.items],
            "totalItems": self.total_items,
            "pagination": self.pagination.to_json(),
        }
        if self.filters:
            out["filters"] = dict(self.filters)
        out["actions"] = {
            "filter": {"description": f"Filter {self.item_type} collection"},
            "create": {"description": f"Create a new {self.item_type}"},
        }
        out["links"] = [{"rel": "self", "href": f"/{self.item_type}"}]
        return out
