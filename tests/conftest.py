"""Test configuration and fixtures."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import pytest

from cognitive_hypermedia.core.config import EngineConfig
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.store import CognitiveStore
from cognitive_hypermedia.storage.memory import InMemoryStorageAdapter

EXAMPLES_DIR = Path(__file__).resolve().parents[1] / "examples" / "state_machines"

TASK_DEFINITION: dict[str, Any] = {
    "initialState": "pending",
    "states": {
        "pending": {
            "name": "pending",
            "description": "Task is waiting.",
            "allowedActions": {
                "start": {"description": "Start"},
                "cancel": {"description": "Cancel"},
            },
            "transitions": {
                "start": {"target": "inProgress"},
                "cancel": {"target": "cancelled"},
            },
        },
        "inProgress": {
            "name": "inProgress",
            "description": "Task is active.",
            "allowedActions": {
                "complete": {
                    "description": "Complete",
                    "parameters": {
                        "resolution": {"type": "string"},
                        "effort": {"type": "number", "min": 0, "max": 100},
                    },
                },
                "cancel": {"description": "Cancel"},
            },
            "transitions": {
                "complete": {"target": "completed"},
                "cancel": {"target": "cancelled"},
            },
        },
        "completed": {"name": "completed", "description": "Task is done.", "allowedActions": {}},
        "cancelled": {"name": "cancelled", "description": "Task cancelled.", "allowedActions": {}},
    },
}

# A single state that loops onto itself; every action succeeds from every read.
COUNTER_DEFINITION: dict[str, Any] = {
    "initialState": "open",
    "states": {
        "open": {
            "allowedActions": {"touch": {"description": "Record a touch"}},
            "transitions": {"touch": {"target": "open"}},
        }
    },
}


@pytest.fixture
def task_definition() -> dict[str, Any]:
    """Provide a fresh copy of the task state machine document."""
    return copy.deepcopy(TASK_DEFINITION)


@pytest.fixture
def counter_definition() -> dict[str, Any]:
    return copy.deepcopy(COUNTER_DEFINITION)


@pytest.fixture
def storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture
def registry(task_definition: dict[str, Any]) -> StateMachineRegistry:
    registry = StateMachineRegistry()
    registry.register("task", task_definition)
    return registry


@pytest.fixture
def store(storage: InMemoryStorageAdapter, registry: StateMachineRegistry) -> CognitiveStore:
    """Provide an engine over in-memory storage with the task machine registered."""
    return CognitiveStore(storage, registry, config=EngineConfig(max_retries=3))


@pytest.fixture
def examples_dir() -> Path:
    return EXAMPLES_DIR
