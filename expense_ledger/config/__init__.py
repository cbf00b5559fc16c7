"""Configuration package."""

from expense_ledger.config.settings import (
    GoogleSheetsSettings,
    LedgerSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "LedgerSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
