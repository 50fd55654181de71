"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PropertiesRequest(BaseModel):
    properties: dict[str, Any] = Field(default_factory=dict)


class ActionRequest(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class CreatedResource(BaseModel):
    id: str
    resource: dict[str, Any]


class DeleteResult(BaseModel):
    deleted: bool


class TransitionInfo(BaseModel):
    action: str
    targetState: str
    targetDescription: str = ""


class StateTransitions(BaseModel):
    type: str
    currentState: str
    stateDescription: str | None = None
    terminal: bool
    possibleTransitions: list[TransitionInfo] = Field(default_factory=list)
