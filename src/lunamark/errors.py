"""Error taxonomy and the discriminated result returned at the core's seams.

Codec and loader failures are recovered locally (skip and log). Mutation
failures are surfaced to the caller after rollback, wrapped in a
:class:`Result` rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class LunamarkError(Exception):
    """Base class for every expected failure mode."""

    code: str = "LUNAMARK_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ParseError(LunamarkError):
    """A task file could not be turned into a valid Task."""

    code = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        file_path: str = "",
        fields: list[str] | None = None,
        partial: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, {"file_path": file_path, "fields": list(fields or [])})
        self.file_path = file_path
        self.fields = list(fields or [])
        self.partial = partial


class ValidationError(LunamarkError):
    """A mutation input was rejected by its schema."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message, {"fields": list(fields or [])})
        self.fields = list(fields or [])


class NotFoundError(LunamarkError):
    code = "NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", {"task_id": task_id})
        self.task_id = task_id


class PersistenceError(LunamarkError):
    """The authoritative write failed; the optimistic prediction was discarded."""

    code = "PERSISTENCE_ERROR"


class OrderingExhaustionError(LunamarkError):
    """The gap between two order keys is too small to split again.

    Internal only: handled by renumbering the column.
    """

    code = "ORDERING_EXHAUSTED"

    def __init__(self, prev_order: float | None, next_order: float | None) -> None:
        super().__init__(
            f"No room between order keys {prev_order!r} and {next_order!r}",
            {"prev_order": prev_order, "next_order": next_order},
        )
        self.prev_order = prev_order
        self.next_order = next_order


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a typed error, never both."""

    value: T | None = None
    error: LunamarkError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: LunamarkError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
