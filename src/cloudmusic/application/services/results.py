"""Operation results returned across the provider service boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from cloudmusic.domain.exceptions import DomainException

T = TypeVar("T")


# Hey future me - ProviderService never throws domain errors at its caller, it returns one
# of these. success=True means value is set (value may legitimately be None, e.g. remove).
# success=False means error is set; error_kind is the stable string the HTTP layer maps
# to a status code ("not_found" -> 404, "validation" -> 422, ...). Programming errors and
# cancellation are NOT wrapped - they still propagate.
@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Success/failure result of a provider engine operation."""

    success: bool
    value: T | None = None
    error: DomainException | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> OperationResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error: DomainException) -> OperationResult[T]:
        return cls(success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.success

    @property
    def error_kind(self) -> str | None:
        """Stable error category, None on success."""
        return self.error.error_kind if self.error is not None else None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the wrapped error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
