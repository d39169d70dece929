"""Typed success/failure values returned by the leave engine.

Engine operations return ``Ok(value)`` or ``Err(error)`` instead of raising
for expected outcomes. HTTP handlers call ``unwrap()``, which re-raises the
carried ``LeaveError`` into the application exception handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Literal, NoReturn, TypeVar

if TYPE_CHECKING:
    from leavetrack.exceptions import LeaveError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> Literal[True]:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: LeaveError

    @property
    def ok(self) -> Literal[False]:
        return False

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Ok[T] | Err
