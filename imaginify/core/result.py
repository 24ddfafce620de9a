"""Outcome of a store operation: either a value or the error kind that prevented it."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from imaginify.core.exceptions import AppError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: AppError | None = None

    @classmethod
    def ok(cls, value: T | None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AppError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
