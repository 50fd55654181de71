"""Declarative state machine definitions.

A definition is plain data (typically a JSON document) describing the states of
one resource type, the actions each state advertises, and the transitions those
actions trigger. Definitions are validated once and then compiled into a
:class:`StateMachine`, which answers ``(state, action) -> target`` lookups from
an explicit table.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cognitive_hypermedia.core.errors import InvalidDefinitionError, InvalidRequestError
from cognitive_hypermedia.storage.adapter import values_equal

ParameterType = Literal["string", "number", "boolean", "object", "array"]

_DEFINITION_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class ParameterDefinition(BaseModel):
    """Describes one payload field accepted by an action."""

    model_config = _DEFINITION_CONFIG

    type: ParameterType
    description: str | None = None
    required: bool = False
    default: Any = None
    options: list[Any] | None = None
    minimum: float | None = Field(default=None, alias="min")
    maximum: float | None = Field(default=None, alias="max")
    pattern: str | None = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    def check(self, name: str, value: object) -> None:
        if not _matches_type(self.type, value):
            raise InvalidRequestError(
                f"Parameter '{name}' must be of type {self.type}", parameter=name
            )
        if self.options is not None and not any(
            values_equal(value, option) for option in self.options
        ):
            raise InvalidRequestError(
                f"Parameter '{name}' must be one of {self.options!r}", parameter=name
            )
        if self.type == "number" and isinstance(value, int | float):
            if self.minimum is not None and value < self.minimum:
                raise InvalidRequestError(
                    f"Parameter '{name}' must be >= {self.minimum}", parameter=name
                )
            if self.maximum is not None and value > self.maximum:
                raise InvalidRequestError(
                    f"Parameter '{name}' must be <= {self.maximum}", parameter=name
                )
        if self.pattern is not None and isinstance(value, str):
            if re.search(self.pattern, value) is None:
                raise InvalidRequestError(
                    f"Parameter '{name}' does not match pattern {self.pattern!r}",
                    parameter=name,
                )


def _matches_type(kind: ParameterType, value: object) -> bool:
    if kind == "string":
        return isinstance(value, str)
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "number":
        return isinstance(value, int | float) and not isinstance(value, bool)
    if kind == "object":
        return isinstance(value, Mapping)
    return isinstance(value, list | tuple)


class ActionDefinition(BaseModel):
    model_config = _DEFINITION_CONFIG

    description: str
    effect: str | None = None
    confirmation: str | None = None
    parameters: dict[str, ParameterDefinition] | None = None

    def validate_payload(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Check a payload against the declared parameters.

        Actions without declared parameters accept any payload. Declared
        defaults are filled in for missing optional parameters.
        """

        if self.parameters is None:
            return dict(payload)

        unknown = sorted(set(payload) - set(self.parameters))
        if unknown:
            raise InvalidRequestError(
                f"Unknown parameters: {', '.join(unknown)}", parameters=unknown
            )

        out: dict[str, Any] = {}
        for name, param in self.parameters.items():
            if name in payload:
                param.check(name, payload[name])
                out[name] = payload[name]
            elif param.required:
                raise InvalidRequestError(
                    f"Missing required parameter '{name}'", parameter=name
                )
            elif param.default is not None:
                out[name] = param.default
        return out


class TransitionDefinition(BaseModel):
    model_config = _DEFINITION_CONFIG

    target: str
    description: str | None = None


class StateDefinition(BaseModel):
    model_config = _DEFINITION_CONFIG

    name: str | None = None
    description: str | None = None
    allowed_actions: dict[str, ActionDefinition] = Field(
        default_factory=dict, alias="allowedActions"
    )
    transitions: dict[str, TransitionDefinition] = Field(default_factory=dict)


class StateMachineDefinition(BaseModel):
    """The full state machine of one resource type."""

    model_config = _DEFINITION_CONFIG

    initial_state: str = Field(alias="initialState")
    states: dict[str, StateDefinition]

    @model_validator(mode="after")
    def _check_structure(self) -> StateMachineDefinition:
        if not self.states:
            raise ValueError("a state machine needs at least one state")
        if self.initial_state not in self.states:
            raise ValueError(f"initial state '{self.initial_state}' is not a defined state")

        for key, state in self.states.items():
            if state.name is not None and state.name != key:
                raise ValueError(f"state '{key}' declares a different name '{state.name}'")
            for action, transition in state.transitions.items():
                if action not in state.allowed_actions:
                    raise ValueError(
                        f"state '{key}': transition '{action}' is not listed in allowedActions"
                    )
                if transition.target not in self.states:
                    raise ValueError(
                        f"state '{key}': transition '{action}' targets undefined "
                        f"state '{transition.target}'"
                    )
        return self

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_definition(raw: StateMachineDefinition | Mapping[str, Any]) -> StateMachineDefinition:
    """Validate ``raw`` and return an independent definition.

    Raises:
        InvalidDefinitionError: if the definition breaks a structural rule.
    """

    if isinstance(raw, StateMachineDefinition):
        raw = raw.to_json()
    try:
        return StateMachineDefinition.model_validate(raw)
    except ValidationError as e:
        problems = [_format_error(err) for err in e.errors()]
        raise InvalidDefinitionError(
            "Invalid state machine definition: " + "; ".join(problems),
            errors=problems,
        ) from e


def _format_error(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg", "invalid"))
    return f"{loc}: {msg}" if loc else msg


def load_definition(path: Path) -> StateMachineDefinition:
    """Read a JSON state machine document."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidDefinitionError(f"{path}: cannot read ({e})", path=str(path)) from e
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidDefinitionError(f"{path}: not valid JSON ({e})", path=str(path)) from e
    if not isinstance(raw, dict):
        raise InvalidDefinitionError(f"{path}: expected a JSON object", path=str(path))
    return parse_definition(raw)


class StateMachine:
    """A validated definition compiled into a ``(state, action)`` table."""

    def __init__(self, definition: StateMachineDefinition) -> None:
        self.definition = definition
        self._table: Mapping[tuple[str, str], str] = MappingProxyType(
            {
                (state_name, action): transition.target
                for state_name, state in definition.states.items()
                for action, transition in state.transitions.items()
            }
        )

    @property
    def initial_state(self) -> str:
        return self.definition.initial_state

    @property
    def states(self) -> list[str]:
        return list(self.definition.states)

    def has_state(self, state: object) -> bool:
        return isinstance(state, str) and state in self.definition.states

    def state(self, name: str) -> StateDefinition | None:
        return self.definition.states.get(name)

    def allowed_actions(self, state: str) -> dict[str, ActionDefinition]:
        definition = self.state(state)
        return dict(definition.allowed_actions) if definition is not None else {}

    def target(self, state: str, action: str) -> str | None:
        return self._table.get((state, action))

    def transitions_from(self, state: str) -> dict[str, str]:
        return {action: target for (src, action), target in self._table.items() if src == state}

    def is_terminal(self, state: str) -> bool:
        return self.has_state(state) and not self.transitions_from(state)

    def untransitioned_actions(self) -> list[tuple[str, str]]:
        """Actions advertised by a state that no transition backs."""

        return [
            (state_name, action)
            for state_name, state in self.definition.states.items()
            for action in state.allowed_actions
            if (state_name, action) not in self._table
        ]
