"""Tagged success/failure values returned by every registry and store operation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Iterable, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Machine-readable failure categories."""

    REQUIRED = "REQUIRED"
    BAD_VAL = "BAD_VAL"
    BAD_RANGE = "BAD_RANGE"
    BAD_ID = "BAD_ID"
    EXISTS = "EXISTS"
    DB = "DB"


@dataclass(frozen=True, slots=True)
class AppError:
    """A single failure with an optional offending field name."""

    kind: ErrorKind
    message: str
    field: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err:
    errors: tuple[AppError, ...]

    def __post_init__(self) -> None:
        if not self.errors:
            raise ValueError("Err requires at least one error.")

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.errors[0].kind

    @property
    def message(self) -> str:
        return "; ".join(error.message for error in self.errors)


Result = Union[Ok[T], Err]


def ok(value: T) -> Ok[T]:
    return Ok(value)


def err(kind: ErrorKind, message: str, field: Optional[str] = None) -> Err:
    return Err((AppError(kind=kind, message=message, field=field),))


def err_from(errors: Iterable[AppError]) -> Err:
    return Err(tuple(errors))
