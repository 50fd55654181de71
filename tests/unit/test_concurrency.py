"""Concurrent writers against one resource.

The interleaving adapter holds the first versioned reads until every writer has
read, so all of them start from the same version and all but one must lose
their first compare-and-set.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from cognitive_hypermedia.core.config import EngineConfig
from cognitive_hypermedia.core.errors import (
    ConcurrentModificationError,
    InvalidActionError,
)
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.store import CognitiveStore
from cognitive_hypermedia.storage.adapter import Record, VersionedRecord
from cognitive_hypermedia.storage.memory import InMemoryStorageAdapter


class InterleavingAdapter(InMemoryStorageAdapter):
    def __init__(self, parties: int) -> None:
        super().__init__()
        self._parties = parties
        self._waiting = parties
        self._barrier: asyncio.Barrier | None = None
        self.cas_calls = 0

    async def get_versioned(
        self, resource_type: str, resource_id: str
    ) -> VersionedRecord | None:
        found = await super().get_versioned(resource_type, resource_id)
        if self._waiting > 0:
            self._waiting -= 1
            if self._barrier is None:
                self._barrier = asyncio.Barrier(self._parties)
            await self._barrier.wait()
        return found

    async def compare_and_set(
        self, resource_type: str, resource_id: str, data: Record, expected_version: str
    ) -> bool:
        self.cas_calls += 1
        return await super().compare_and_set(resource_type, resource_id, data, expected_version)


class AlwaysConflictingAdapter(InMemoryStorageAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.cas_calls = 0

    async def compare_and_set(
        self, resource_type: str, resource_id: str, data: Record, expected_version: str
    ) -> bool:
        self.cas_calls += 1
        return False


def _store(
    storage: InMemoryStorageAdapter, *definitions: tuple[str, dict[str, Any]], retries: int = 3
) -> CognitiveStore:
    registry = StateMachineRegistry()
    for resource_type, definition in definitions:
        registry.register(resource_type, definition)
    return CognitiveStore(storage, registry, config=EngineConfig(max_retries=retries))


@pytest.mark.asyncio
async def test_competing_transitions_have_one_winner(task_definition: dict[str, Any]) -> None:
    storage = InterleavingAdapter(parties=2)
    store = _store(storage, ("task", task_definition))
    task_id = await store.create("task", {})

    results = await asyncio.gather(
        store.perform_action("task", task_id, "start"),
        store.perform_action("task", task_id, "cancel"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidActionError)

    task = await store.get("task", task_id)
    assert task is not None
    assert task.status == winners[0].status
    assert len(task.history) == 1


@pytest.mark.asyncio
async def test_same_transition_twice_applies_once(task_definition: dict[str, Any]) -> None:
    storage = InterleavingAdapter(parties=2)
    store = _store(storage, ("task", task_definition))
    task_id = await store.create("task", {})

    results = await asyncio.gather(
        store.perform_action("task", task_id, "start"),
        store.perform_action("task", task_id, "start"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, InvalidActionError) for r in results) == 1
    task = await store.get("task", task_id)
    assert task is not None
    assert task.status == "inProgress"
    assert len(task.history) == 1


@pytest.mark.asyncio
async def test_concurrent_self_transitions_are_not_lost(counter_definition: dict[str, Any]) -> None:
    storage = InterleavingAdapter(parties=3)
    store = _store(storage, ("counter", counter_definition))
    counter_id = await store.create("counter", {})

    await asyncio.gather(
        store.perform_action("counter", counter_id, "touch", {"a": 1}),
        store.perform_action("counter", counter_id, "touch", {"b": 2}),
        store.perform_action("counter", counter_id, "touch", {"c": 3}),
    )

    counter = await store.get("counter", counter_id)
    assert counter is not None
    assert len(counter.history) == 3
    assert {k: counter.get_property(k) for k in "abc"} == {"a": 1, "b": 2, "c": 3}
    assert storage.cas_calls >= 5


@pytest.mark.asyncio
async def test_concurrent_updates_are_not_lost(task_definition: dict[str, Any]) -> None:
    storage = InterleavingAdapter(parties=2)
    store = _store(storage, ("task", task_definition))
    task_id = await store.create("task", {})

    await asyncio.gather(
        store.update("task", task_id, {"title": "t"}),
        store.update("task", task_id, {"priority": 5}),
    )

    task = await store.get("task", task_id)
    assert task is not None
    assert task.get_property("title") == "t"
    assert task.get_property("priority") == 5


@pytest.mark.asyncio
async def test_gives_up_after_retries(task_definition: dict[str, Any]) -> None:
    storage = AlwaysConflictingAdapter()
    store = _store(storage, ("task", task_definition), retries=2)
    task_id = await store.create("task", {})
    before = await storage.get("task", task_id)

    with pytest.raises(ConcurrentModificationError) as exc:
        await store.perform_action("task", task_id, "start")

    assert exc.value.details["attempts"] == 3
    assert storage.cas_calls == 3
    assert await storage.get("task", task_id) == before


@pytest.mark.asyncio
async def test_zero_retries_fails_on_first_conflict(task_definition: dict[str, Any]) -> None:
    storage = AlwaysConflictingAdapter()
    store = _store(storage, ("task", task_definition), retries=0)
    task_id = await store.create("task", {})

    with pytest.raises(ConcurrentModificationError):
        await store.update("task", task_id, {"title": "x"})

    assert storage.cas_calls == 1
