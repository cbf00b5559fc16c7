"""Request validation package."""

from expense_ledger.validation.validator import RequestValidator, has_cents_precision

__all__ = ["RequestValidator", "has_cents_precision"]
