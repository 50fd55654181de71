"""Resource and state machine endpoints.

Each route is a thin wrapper over one :class:`CognitiveStore` operation. Engine
errors are not handled here; the app-level exception handler turns them into
structured error payloads.

All routes are mounted under `/api`.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, Request

from cognitive_hypermedia import __version__
from cognitive_hypermedia.core.errors import InvalidRequestError, NotFoundError
from cognitive_hypermedia.core.store import CognitiveStore, CollectionOptions
from cognitive_hypermedia.server.models import (
    ActionRequest,
    CreatedResource,
    DeleteResult,
    PropertiesRequest,
    StateTransitions,
    TransitionInfo,
)
from cognitive_hypermedia.storage.adapter import SortOption

router = APIRouter()

# Query parameters of the collection endpoint that are not property filters.
_COLLECTION_PARAMS = {"page", "pageSize", "sort", "direction"}


def _store(request: Request) -> CognitiveStore:
    store = getattr(request.app.state, "store", None)
    if not isinstance(store, CognitiveStore):
        raise HTTPException(status_code=500, detail="Store not configured")
    return store


def _coerce_query_value(raw: str) -> object:
    # `?priority=3` filters on the number 3, `?title=3` would need quoting: `?title="3"`.
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    store = _store(request)
    return {"status": "ok", "version": __version__, "types": store.registry.types()}


@router.get("/types")
async def list_types(request: Request) -> list[str]:
    return await _store(request).resource_types()


@router.get("/types/{resource_type}/state-machine")
async def get_state_machine(resource_type: str, request: Request) -> dict[str, Any]:
    machine = _store(request).registry.resolve(resource_type)
    return machine.definition.to_json()


@router.get("/types/{resource_type}/states/{state}/transitions", response_model=StateTransitions)
async def get_state_transitions(resource_type: str, state: str, request: Request) -> StateTransitions:
    machine = _store(request).registry.resolve(resource_type)
    definition = machine.state(state)
    if definition is None:
        raise InvalidRequestError(
            f"'{state}' is not a state of '{resource_type}'", type=resource_type, state=state
        )
    transitions = []
    for action, target in machine.transitions_from(state).items():
        target_def = machine.state(target)
        transitions.append(
            TransitionInfo(
                action=action,
                targetState=target,
                targetDescription=(target_def.description or "") if target_def else "",
            )
        )
    return StateTransitions(
        type=resource_type,
        currentState=state,
        stateDescription=definition.description,
        terminal=machine.is_terminal(state),
        possibleTransitions=transitions,
    )


@router.post("/resources/{resource_type}", status_code=201, response_model=CreatedResource)
async def create_resource(
    resource_type: str, body: PropertiesRequest, request: Request
) -> CreatedResource:
    resource = await _store(request).create_resource(resource_type, body.properties)
    return CreatedResource(id=resource.id, resource=resource.to_json())


@router.get("/resources/{resource_type}")
async def list_resources(
    resource_type: str,
    request: Request,
    page: int = 1,
    page_size: int | None = Query(default=None, alias="pageSize"),
    sort: str | None = None,
    direction: Literal["asc", "desc"] = "asc",
) -> dict[str, Any]:
    criteria = {
        key: _coerce_query_value(value)
        for key, value in request.query_params.items()
        if key not in _COLLECTION_PARAMS
    }
    options = CollectionOptions(
        filter=criteria,
        page=page,
        page_size=page_size,
        sort=SortOption(field=sort, direction=direction) if sort else None,
    )
    collection = await _store(request).get_collection(resource_type, options)
    return collection.to_json()


@router.get("/resources/{resource_type}/{resource_id}")
async def get_resource(resource_type: str, resource_id: str, request: Request) -> dict[str, Any]:
    resource = await _store(request).get(resource_type, resource_id)
    if resource is None:
        raise NotFoundError(resource_type, resource_id)
    return resource.to_json()


@router.patch("/resources/{resource_type}/{resource_id}")
async def update_resource(
    resource_type: str, resource_id: str, body: PropertiesRequest, request: Request
) -> dict[str, Any]:
    resource = await _store(request).update(resource_type, resource_id, body.properties)
    return resource.to_json()


@router.delete("/resources/{resource_type}/{resource_id}", response_model=DeleteResult)
async def delete_resource(resource_type: str, resource_id: str, request: Request) -> DeleteResult:
    removed = await _store(request).delete(resource_type, resource_id)
    return DeleteResult(deleted=removed)


@router.get("/resources/{resource_type}/{resource_id}/actions")
async def get_resource_actions(
    resource_type: str, resource_id: str, request: Request
) -> dict[str, Any]:
    actions = await _store(request).allowed_actions(resource_type, resource_id)
    return {
        name: action.model_dump(mode="json", by_alias=True, exclude_none=True)
        for name, action in actions.items()
    }


@router.post("/resources/{resource_type}/{resource_id}/actions/{action}")
async def perform_action(
    resource_type: str,
    resource_id: str,
    action: str,
    request: Request,
    body: ActionRequest | None = None,
) -> dict[str, Any]:
    payload = body.payload if body is not None else {}
    resource = await _store(request).perform_action(resource_type, resource_id, action, payload)
    return resource.to_json()
