"""Error taxonomy for the resource engine.

Every failure the engine reports is a :class:`CognitiveStoreError` carrying a
stable ``kind`` string. Exposure layers that do not want to deal with the
exception model can use :func:`capture` to get an :class:`OperationResult`
holding either the value or a structured :class:`ErrorInfo`.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    kind: str
    message: str
    details: dict[str, object] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}


class CognitiveStoreError(Exception):
    """Base class for all engine errors."""

    kind = "Error"

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, object] = details

    def to_error(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=self.message, details=dict(self.details))


class UnknownTypeError(CognitiveStoreError):
    kind = "UnknownType"

    def __init__(self, resource_type: str) -> None:
        super().__init__(
            f"No state machine registered for type '{resource_type}'",
            type=resource_type,
        )


class InvalidDefinitionError(CognitiveStoreError):
    kind = "InvalidDefinition"


class NotFoundError(CognitiveStoreError):
    kind = "NotFound"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"Resource {resource_type}/{resource_id} not found",
            type=resource_type,
            id=resource_id,
        )


class InvalidStateError(CognitiveStoreError):
    """The persisted status is not a state of the type's machine."""

    kind = "InvalidState"

    def __init__(self, resource_type: str, resource_id: str, status: object) -> None:
        super().__init__(
            f"Resource {resource_type}/{resource_id} is in undefined state {status!r}",
            type=resource_type,
            id=resource_id,
            status=status,
        )


class InvalidActionError(CognitiveStoreError):
    kind = "InvalidAction"

    def __init__(
        self, resource_type: str, resource_id: str, action: str, current_state: str
    ) -> None:
        super().__init__(
            f"Action '{action}' is not available for {resource_type}/{resource_id} "
            f"in state '{current_state}'",
            type=resource_type,
            id=resource_id,
            action=action,
            state=current_state,
        )


class ConcurrentModificationError(CognitiveStoreError):
    kind = "ConcurrentModification"

    def __init__(self, resource_type: str, resource_id: str, attempts: int) -> None:
        super().__init__(
            f"Resource {resource_type}/{resource_id} was modified concurrently; "
            f"gave up after {attempts} attempts",
            type=resource_type,
            id=resource_id,
            attempts=attempts,
        )


class AdapterFailureError(CognitiveStoreError):
    kind = "AdapterFailure"


class InvalidRequestError(CognitiveStoreError):
    """Caller input the engine refuses: protected writes, bad values, bad paging."""

    kind = "InvalidRequest"


@dataclass(frozen=True, slots=True)
class OperationResult(Generic[T]):
    ok: bool
    value: T | None = None
    error: ErrorInfo | None = None


async def capture(operation: Awaitable[T]) -> OperationResult[T]:
    """Await an engine operation and fold engine errors into a result value.

    Only :class:`CognitiveStoreError` is folded; anything else is a bug and
    propagates.
    """

    try:
        value = await operation
    except CognitiveStoreError as e:
        return OperationResult(ok=False, error=e.to_error())
    return OperationResult(ok=True, value=value)
