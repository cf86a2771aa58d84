"""Explicit success/failure result returned by every API operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .exceptions import SendGridError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one API operation.

    A success may carry a falsy value (an empty list, ``{}`` or ``0``); use
    ``ok`` rather than truthiness to tell the two apart.

    Example:
        ```python
        result = client.newsletters.get("Spring sale")
        if result.ok:
            print(result.value["subject"])
        else:
            print(result.error.message)
        ```
    """

    value: T | None = None
    error: SendGridError | None = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: SendGridError) -> Result[Any]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        if self.error is not None:
            return default
        return self.value  # type: ignore[return-value]
