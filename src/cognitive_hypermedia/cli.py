"""Command-line entrypoint.

Drives the engine against the JSON-file backend so state survives between
invocations. State machines are loaded from a directory of ``<type>.json``
documents.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cognitive_hypermedia import __version__
from cognitive_hypermedia.core.config import AppConfig
from cognitive_hypermedia.core.errors import CognitiveStoreError, NotFoundError
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.statemachine import load_definition
from cognitive_hypermedia.core.store import CognitiveStore, CollectionOptions
from cognitive_hypermedia.server.config import ServerSettings
from cognitive_hypermedia.storage.json_file import JsonFileStorageAdapter

logger = logging.getLogger(__name__)


def _json_object(value: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return parsed


def _parse_filters(values: list[str] | None) -> dict[str, object]:
    criteria: dict[str, object] = {}
    for item in values or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid filter {item!r}; expected key=value")
        try:
            criteria[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            criteria[key.strip()] = raw
    return criteria


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cognitive-hypermedia",
        description="Manage state-machine governed resources",
    )
    parser.add_argument(
        "--version", action="version", version=f"cognitive-hypermedia {__version__}"
    )
    parser.add_argument(
        "--definitions",
        type=Path,
        default=None,
        help="Directory of <type>.json state machines (default: COGNITIVE_STATE_MACHINE_DIR)",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="JSON document holding resources (default: COGNITIVE_STORAGE_PATH)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a state machine document")
    validate.add_argument("file", type=Path)

    subparsers.add_parser("types", help="List known resource types")

    create = subparsers.add_parser("create", help="Create a resource in its initial state")
    create.add_argument("type")
    create.add_argument("--properties", type=_json_object, default={}, help="JSON object")

    get = subparsers.add_parser("get", help="Show a resource")
    get.add_argument("type")
    get.add_argument("id")

    update = subparsers.add_parser("update", help="Replace properties of a resource")
    update.add_argument("type")
    update.add_argument("id")
    update.add_argument("--properties", type=_json_object, required=True, help="JSON object")

    delete = subparsers.add_parser("delete", help="Delete a resource")
    delete.add_argument("type")
    delete.add_argument("id")

    list_cmd = subparsers.add_parser("list", help="List resources of a type")
    list_cmd.add_argument("type")
    list_cmd.add_argument(
        "--filter",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Exact-match filter; repeatable",
    )
    list_cmd.add_argument("--page", type=int, default=1)
    list_cmd.add_argument("--page-size", type=int, default=None)

    act = subparsers.add_parser("act", help="Perform an action on a resource")
    act.add_argument("type")
    act.add_argument("id")
    act.add_argument("action")
    act.add_argument("--payload", type=_json_object, default={}, help="JSON object")

    actions = subparsers.add_parser("actions", help="Show the actions a resource allows")
    actions.add_argument("type")
    actions.add_argument("id")

    return parser


async def _dispatch(args: argparse.Namespace, store: CognitiveStore) -> object:
    if args.command == "types":
        return await store.resource_types()

    if args.command == "create":
        resource = await store.create_resource(args.type, args.properties)
        return resource.to_json()

    if args.command == "get":
        found = await store.get(args.type, args.id)
        if found is None:
            raise NotFoundError(args.type, args.id)
        return found.to_json()

    if args.command == "update":
        return (await store.update(args.type, args.id, args.properties)).to_json()

    if args.command == "delete":
        return {"deleted": await store.delete(args.type, args.id)}

    if args.command == "list":
        options = CollectionOptions(
            filter=_parse_filters(args.filter), page=args.page, page_size=args.page_size
        )
        return (await store.get_collection(args.type, options)).to_json()

    if args.command == "act":
        resource = await store.perform_action(args.type, args.id, args.action, args.payload)
        return resource.to_json()

    if args.command == "actions":
        allowed = await store.allowed_actions(args.type, args.id)
        return {
            name: action.model_dump(mode="json", by_alias=True, exclude_none=True)
            for name, action in allowed.items()
        }

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = AppConfig()
        server_settings = ServerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    config.setup_logging()

    try:
        if args.command == "validate":
            definition = load_definition(args.file)
            _emit(
                {
                    "valid": True,
                    "initialState": definition.initial_state,
                    "states": list(definition.states),
                }
            )
            return 0

        registry = StateMachineRegistry()
        definitions = args.definitions or server_settings.state_machine_dir
        if definitions.is_dir():
            registry.load_directory(definitions)
        else:
            logger.warning(
                "State machine directory not found", extra={"directory": str(definitions)}
            )

        state_file = args.state_file or config.storage.path
        store = CognitiveStore(
            JsonFileStorageAdapter(state_file), registry, config=config.engine
        )
        _emit(asyncio.run(_dispatch(args, store)))
        return 0

    except CognitiveStoreError as e:
        print(json.dumps({"error": e.to_error().to_json()}, ensure_ascii=False), file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
