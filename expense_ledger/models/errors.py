"""
Typed Errors and Operation Results

DESIGN DECISION: Callers never inspect opaque error payloads.
Every expected failure is one member of the closed ErrorKind enum,
grouped into four categories, and travels inside an OperationResult.
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator


class ErrorCategory(str, Enum):
    """Broad family of an error, used for remediation decisions."""
    VALIDATION_ERROR = "VALIDATION_ERROR"  # Bad shape or range, nothing written
    BUSINESS_ERROR = "BUSINESS_ERROR"      # Valid input, rule says no
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"  # Transient, safe to retry
    NOT_FOUND = "NOT_FOUND"


class ErrorKind(str, Enum):
    """Every expected failure the ledger can report."""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PERIOD = "INVALID_PERIOD"
    INVALID_LIMIT = "INVALID_LIMIT"

    BASE_CURRENCY_REQUIRED = "BASE_CURRENCY_REQUIRED"
    ALREADY_SET = "ALREADY_SET"
    DUPLICATE_BUDGET = "DUPLICATE_BUDGET"
    DUPLICATE_CATEGORY = "DUPLICATE_CATEGORY"
    EMAIL_TAKEN = "EMAIL_TAKEN"

    RATE_UNAVAILABLE = "RATE_UNAVAILABLE"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

    NOT_FOUND = "NOT_FOUND"

    @property
    def category(self) -> ErrorCategory:
        return _KIND_CATEGORIES[self]

    @property
    def retryable(self) -> bool:
        return self.category is ErrorCategory.DEPENDENCY_ERROR


_KIND_CATEGORIES = {
    ErrorKind.INVALID_INPUT: ErrorCategory.VALIDATION_ERROR,
    ErrorKind.INVALID_PERIOD: ErrorCategory.VALIDATION_ERROR,
    ErrorKind.INVALID_LIMIT: ErrorCategory.VALIDATION_ERROR,
    ErrorKind.BASE_CURRENCY_REQUIRED: ErrorCategory.BUSINESS_ERROR,
    ErrorKind.ALREADY_SET: ErrorCategory.BUSINESS_ERROR,
    ErrorKind.DUPLICATE_BUDGET: ErrorCategory.BUSINESS_ERROR,
    ErrorKind.DUPLICATE_CATEGORY: ErrorCategory.BUSINESS_ERROR,
    ErrorKind.EMAIL_TAKEN: ErrorCategory.BUSINESS_ERROR,
    ErrorKind.RATE_UNAVAILABLE: ErrorCategory.DEPENDENCY_ERROR,
    ErrorKind.STORAGE_UNAVAILABLE: ErrorCategory.DEPENDENCY_ERROR,
    ErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
}


class LedgerError(BaseModel):
    """A typed, user-facing error."""

    kind: ErrorKind
    category: ErrorCategory
    message: str
    retryable: bool = False
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_kind(
        cls,
        kind: ErrorKind,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> "LedgerError":
        return cls(
            kind=kind,
            category=kind.category,
            message=message,
            retryable=kind.retryable,
            details=details or {},
        )


T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """
    Outcome of a ledger operation.

    Exactly one of these holds:
    - success is True and error is None (value may be None for deletes)
    - success is False and error describes why
    """

    success: bool
    value: Optional[T] = None
    error: Optional[LedgerError] = None

    @model_validator(mode='after')
    def validate_outcome(self) -> 'OperationResult':
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error")
        if not self.success and self.error is None:
            raise ValueError("A failed result must carry an error")
        return self

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: LedgerError) -> "OperationResult":
        return cls(success=False, error=error)

    @property
    def kind(self) -> Optional[ErrorKind]:
        """The error kind, or None on success."""
        return self.error.kind if self.error else None
