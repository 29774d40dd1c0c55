from dataclasses import dataclass
from typing import Generic, TypeVar

from src.domain.exceptions import BookingEngineError, ErrorCode

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of an engine entry point: a value or a business error."""

    value: T | None = None
    error: BookingEngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BookingEngineError) -> "OperationResult[T]":
        return cls(error=error)
