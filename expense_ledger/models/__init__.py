"""
Data Models Package

This package contains all Pydantic models used in the Expense Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from expense_ledger.models.ledger import (
    BaseCurrency,
    BaseCurrencyRequest,
    Budget,
    BudgetRequest,
    BudgetStatus,
    Category,
    CurrencyCode,
    CurrencySet,
    CurrencyUnset,
    Expense,
    ExpenseFilter,
    ExpenseRequest,
    ExpenseSummary,
    MonthlyPoint,
    User,
    ValidationIssue,
)
from expense_ledger.models.errors import (
    ErrorCategory,
    ErrorKind,
    LedgerError,
    OperationResult,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BaseCurrency",
    "BaseCurrencyRequest",
    "Budget",
    "BudgetRequest",
    "BudgetStatus",
    "Category",
    "CurrencyCode",
    "CurrencySet",
    "CurrencyUnset",
    "Expense",
    "ExpenseFilter",
    "ExpenseRequest",
    "ExpenseSummary",
    "MonthlyPoint",
    "User",
    "ValidationIssue",
    # Errors
    "ErrorCategory",
    "ErrorKind",
    "LedgerError",
    "OperationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
