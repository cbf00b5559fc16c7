"""Services package: the ledger's external collaborators."""

from expense_ledger.services.rates import (
    CachedRateProvider,
    RateProviderInterface,
    StaticRateProvider,
)
from expense_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Rate providers
    "CachedRateProvider",
    "RateProviderInterface",
    "StaticRateProvider",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
]
