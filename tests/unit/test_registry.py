from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from cognitive_hypermedia.core.errors import InvalidDefinitionError, UnknownTypeError
from cognitive_hypermedia.core.registry import StateMachineRegistry


def test_register_and_resolve(task_definition: dict[str, Any]) -> None:
    registry = StateMachineRegistry()
    machine = registry.register("task", task_definition)

    assert registry.resolve("task") is machine
    assert "task" in registry
    assert len(registry) == 1
    assert registry.types() == ["task"]


def test_resolve_unknown_type() -> None:
    registry = StateMachineRegistry()

    with pytest.raises(UnknownTypeError) as exc:
        registry.resolve("ghost")

    assert exc.value.kind == "UnknownType"
    assert registry.get("ghost") is None


def test_failed_registration_keeps_previous_machine(task_definition: dict[str, Any]) -> None:
    registry = StateMachineRegistry()
    original = registry.register("task", task_definition)

    task_definition["initialState"] = "nowhere"
    with pytest.raises(InvalidDefinitionError):
        registry.register("task", task_definition)

    assert registry.resolve("task") is original


def test_registration_with_dangling_transition_keeps_previous_machine(
    task_definition: dict[str, Any],
) -> None:
    registry = StateMachineRegistry()
    original = registry.register("task", task_definition)

    task_definition["states"]["pending"]["transitions"]["start"] = {"target": "limbo"}
    with pytest.raises(InvalidDefinitionError, match="limbo"):
        registry.register("task", task_definition)

    assert registry.resolve("task") is original
    assert registry.resolve("task").target("pending", "start") == "inProgress"


def test_reregistration_replaces_machine(
    task_definition: dict[str, Any], counter_definition: dict[str, Any]
) -> None:
    registry = StateMachineRegistry()
    registry.register("task", task_definition)
    replacement = registry.register("task", counter_definition)

    assert registry.resolve("task") is replacement
    assert registry.resolve("task").initial_state == "open"


def test_registration_warns_about_untransitioned_actions(
    task_definition: dict[str, Any], caplog: pytest.LogCaptureFixture
) -> None:
    task_definition["states"]["pending"]["allowedActions"]["comment"] = {"description": "Comment"}

    with caplog.at_level(logging.WARNING, logger="cognitive_hypermedia.core.registry"):
        StateMachineRegistry().register("task", task_definition)

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any(getattr(r, "action", None) == "comment" for r in warnings)


def test_load_directory(tmp_path: Path, task_definition: dict[str, Any], counter_definition: dict[str, Any]) -> None:
    (tmp_path / "task.json").write_text(json.dumps(task_definition), encoding="utf-8")
    (tmp_path / "counter.json").write_text(json.dumps(counter_definition), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = StateMachineRegistry()
    loaded = registry.load_directory(tmp_path)

    assert loaded == ["counter", "task"]
    assert registry.types() == ["counter", "task"]
