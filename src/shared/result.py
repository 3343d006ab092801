"""Result type for per-item error handling.

A Rust-style Result lets a batch operation (one solver run per problem, one
parse per log) record each item's failure as a value and carry on with the
next item, instead of unwinding the whole batch with an exception.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E", bound=Exception)  # Error type


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value (safe because this is Ok)."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Error result containing an exception."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Get the value (raises the contained exception because this is Err)."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default


Result = Union[Ok[T], Err[E]]


def partition(results: Iterable["Result[T, E]"]) -> tuple[list[T], list[E]]:
    """Split results into (values, errors), each in input order."""
    values: list[T] = []
    errors: list[E] = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)
    return values, errors
