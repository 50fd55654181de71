#!/usr/bin/env python3
"""Todo example.

This demonstrates using the engine components directly:

* register the task state machine from `examples/state_machines/task.json`
* create a task and walk it through its lifecycle
* show the affordances advertised at each step, and a rejected action

Storage is in-memory unless `--state-file` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Sequence

from cognitive_hypermedia.core.config import AppConfig
from cognitive_hypermedia.core.errors import InvalidActionError
from cognitive_hypermedia.core.store import CognitiveStore, CollectionOptions
from cognitive_hypermedia.core.statemachine import load_definition
from cognitive_hypermedia.logging import configure_logging
from cognitive_hypermedia.storage.json_file import JsonFileStorageAdapter
from cognitive_hypermedia.storage.memory import InMemoryStorageAdapter

TASK_DEFINITION = Path(__file__).parent / "state_machines" / "task.json"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a task through its state machine.")
    parser.add_argument("--title", default="Write the release notes", help="Task title")
    parser.add_argument("--state-file", type=Path, default=None, help="Persist to this JSON file")
    return parser.parse_args(argv)


async def run(store: CognitiveStore, title: str) -> None:
    task_id = await store.create("task", {"title": title, "priority": 2})
    task = await store.get("task", task_id)
    assert task is not None
    print(f"Created task {task_id} in state {task.status}")
    print(f"  next actions: {sorted(task.allowed_actions)}")

    task = await store.perform_action("task", task_id, "start")
    print(f"start -> {task.status}; next actions: {sorted(task.allowed_actions)}")

    try:
        await store.perform_action("task", task_id, "archive")
    except InvalidActionError as e:
        print(f"archive rejected: {e.to_error().kind}: {e}")

    task = await store.perform_action(
        "task", task_id, "complete", {"resolution": "Shipped with 0.1.0"}
    )
    print(f"complete -> {task.status}; resolution: {task.get_property('resolution')}")

    done = await store.get_collection("task", CollectionOptions(filter={"status": "completed"}))
    print(f"{done.total_items} completed task(s)")
    print(json.dumps(task.to_json(), indent=2))


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = AppConfig()
    configure_logging(config.log_level)

    storage = (
        JsonFileStorageAdapter(args.state_file)
        if args.state_file is not None
        else InMemoryStorageAdapter()
    )
    store = CognitiveStore(storage, config=config.engine)
    store.register_state_machine("task", load_definition(TASK_DEFINITION))

    asyncio.run(run(store, args.title))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
