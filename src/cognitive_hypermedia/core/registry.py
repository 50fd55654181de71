"""Registry of state machines, one per resource type."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from cognitive_hypermedia.core.errors import UnknownTypeError
from cognitive_hypermedia.core.statemachine import (
    StateMachine,
    StateMachineDefinition,
    load_definition,
    parse_definition,
)

logger = logging.getLogger(__name__)


class StateMachineRegistry:
    """Holds one validated, compiled state machine per resource type.

    The registry is populated at startup and read by the store afterwards.
    Registering a type again replaces its machine; resources already persisted
    bind to the new machine through their status on next access.
    """

    def __init__(self) -> None:
        self._machines: dict[str, StateMachine] = {}

    def register(
        self, resource_type: str, definition: StateMachineDefinition | Mapping[str, Any]
    ) -> StateMachine:
        """Validate and register ``definition`` for ``resource_type``.

        Raises:
            InvalidDefinitionError: if the definition is malformed. Any previous
                registration for the type is kept.
        """

        machine = StateMachine(parse_definition(definition))

        for state, action in machine.untransitioned_actions():
            logger.warning(
                "Action is advertised but has no transition",
                extra={"resource_type": resource_type, "state": state, "action": action},
            )

        if resource_type in self._machines:
            logger.warning(
                "Replacing state machine", extra={"resource_type": resource_type}
            )
        self._machines[resource_type] = machine
        logger.info(
            "Registered state machine",
            extra={
                "resource_type": resource_type,
                "initial_state": machine.initial_state,
                "states": machine.states,
            },
        )
        return machine

    def resolve(self, resource_type: str) -> StateMachine:
        machine = self._machines.get(resource_type)
        if machine is None:
            raise UnknownTypeError(resource_type)
        return machine

    def get(self, resource_type: str) -> StateMachine | None:
        return self._machines.get(resource_type)

    def types(self) -> list[str]:
        return sorted(self._machines)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._machines

    def __len__(self) -> int:
        return len(self._machines)

    def load_directory(self, directory: Path) -> list[str]:
        """Register every ``<type>.json`` document found in ``directory``."""

        registered: list[str] = []
        for path in sorted(directory.glob("*.json")):
            self.register(path.stem, load_definition(path))
            registered.append(path.stem)
        return registered
