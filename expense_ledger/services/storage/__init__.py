"""
Storage Services Package

Provides the abstract ledger storage interface and its implementations:
an in-memory backend (default, and used by the tests) and Google Sheets.
"""

from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from expense_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from expense_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
