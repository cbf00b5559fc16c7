"""
Ledger Exceptions

Components raise these for expected business conditions. The facade in
expense_ledger.orchestrator catches them and returns an OperationResult,
so callers of the public API never see them.
"""

from typing import Any, Optional

from expense_ledger.models.errors import ErrorKind, LedgerError


class LedgerException(Exception):
    """Base exception for expected ledger failures."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        kind: Optional[ErrorKind] = None,
    ):
        self.message = message
        self.details = details or {}
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    def to_error(self) -> LedgerError:
        return LedgerError.from_kind(self.kind, self.message, self.details)


class InvalidInputError(LedgerException):
    """Request has a bad shape or value."""
    kind = ErrorKind.INVALID_INPUT


class InvalidPeriodError(InvalidInputError):
    """Budget year or month out of range."""
    kind = ErrorKind.INVALID_PERIOD


class InvalidLimitError(InvalidInputError):
    """Budget limit is negative or not a 2-place amount."""
    kind = ErrorKind.INVALID_LIMIT


class BaseCurrencyRequiredError(LedgerException):
    """User has no base currency and none was supplied."""
    kind = ErrorKind.BASE_CURRENCY_REQUIRED


class BaseCurrencyAlreadySetError(LedgerException):
    """Explicit base currency change attempted after it was set."""
    kind = ErrorKind.ALREADY_SET


class DuplicateBudgetError(LedgerException):
    """Another budget already holds this (year, month, category)."""
    kind = ErrorKind.DUPLICATE_BUDGET


class DuplicateCategoryError(LedgerException):
    """The user already has a category with this name."""
    kind = ErrorKind.DUPLICATE_CATEGORY


class EmailTakenError(LedgerException):
    """Another user is registered with this email."""
    kind = ErrorKind.EMAIL_TAKEN


class RateUnavailableError(LedgerException):
    """
    The rate provider could not supply a rate in time.

    Transient: the caller may retry the whole operation.
    """
    kind = ErrorKind.RATE_UNAVAILABLE

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        on: Any,
        reason: str = "no rate available",
    ):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.on = on
        super().__init__(
            f"Exchange rate {from_currency}->{to_currency} for {on} unavailable: {reason}",
            details={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "date": str(on),
            },
        )


class RecordNotFoundError(LedgerException):
    """Record is missing or owned by another user."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            details={"entity": entity, "id": entity_id},
        )
