"""Minimal Ok/Err result type for operation outcomes.

Result propagation policy
-------------------------
* **Components** (script runner, readiness watcher) and the **task
  dispatcher** return ``Result``.  Expected failures travel as ``Err``
  carrying a ``TaskExecutionError`` instance; they are never raised
  across these boundaries.

* **External collaborators** (apply, delete, watch streams) raise.  The
  dispatcher and the watch session convert their exceptions into ``Err``.

* **Process boundary** (CLI) converts ``Err`` into log output and a
  non-zero exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Literal, NoReturn, TypeGuard, TypeVar

T = TypeVar('T')
E = TypeVar('E')


class UnwrapError(RuntimeError):
    """Raised when unwrapping the wrong side of a Result."""


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    ok_value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.ok_value

    def unwrap_err(self) -> NoReturn:
        raise UnwrapError(f'called unwrap_err() on Ok: {self.ok_value!r}')


@dataclass(slots=True, frozen=True)
class Err(Generic[E]):
    err_value: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> NoReturn:
        # Re-raise exception payloads so callers keep the original type
        if isinstance(self.err_value, BaseException):
            raise self.err_value
        raise UnwrapError(f'called unwrap() on Err: {self.err_value!r}')

    def unwrap_err(self) -> E:
        return self.err_value


type Result[T, E] = Ok[T] | Err[E]


def is_ok(result: Ok[Any] | Err[Any]) -> TypeGuard[Ok[Any]]:
    return isinstance(result, Ok)


def is_err(result: Ok[Any] | Err[Any]) -> TypeGuard[Err[Any]]:
    return isinstance(result, Err)
