"""
Configuration Management for Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Business constants that product may want to tune (supported currencies,
the plausible budget years, the percent-used sentinel) live here rather
than being hard-coded in the engine.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    users_sheet_name: str = Field(default="Users")
    categories_sheet_name: str = Field(default="Categories")
    expenses_sheet_name: str = Field(default="Expenses")
    budgets_sheet_name: str = Field(default="Budgets")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level passed to the log output"
    )
    json_output: bool = Field(
        default=True,
        description="Render log lines as JSON (False gives console output)"
    )


class LedgerSettings(BaseSettings):
    """
    Ledger engine settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Currencies a user may record or budget in
    supported_currencies: str = Field(
        default="USD,EUR,GBP,INR,JPY,CNY,AUD,CAD,CHF,SEK,NZD,SGD",
        description="Comma-separated list of accepted ISO 4217 codes"
    )

    # Money
    max_amount: Decimal = Field(
        default=Decimal("999999999999.99"),
        gt=0,
        description="Largest expense amount or budget limit accepted"
    )

    # Budget periods
    min_budget_year: int = Field(default=2000, ge=1000, le=9999)
    max_budget_year: int = Field(default=2100, ge=1000, le=9999)

    # Budget status presentation
    percent_used_cap: int = Field(
        default=999999,
        ge=100,
        description="Reported percent used for a zero limit with spending"
    )
    overall_budget_label: str = Field(
        default="All expenses",
        min_length=1,
        description="Category name shown for budgets without a category"
    )

    # Exchange rates
    rate_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="Upper bound on a single rate lookup"
    )
    rate_cache_ttl_seconds: int = Field(
        default=0,
        ge=0,
        le=86400,
        description="Cross-request rate cache lifetime (0 disables the cache)"
    )
    rate_cache_max_entries: int = Field(default=1024, ge=1)
    static_rates_path: Optional[str] = Field(
        default=None,
        description="JSON file of 'FROM/TO' -> rate used by the static provider"
    )

    # Persistence
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage backend create_app_components wires up"
    )

    @model_validator(mode='after')
    def validate_year_range(self) -> 'LedgerSettings':
        """The budget year range must not be empty."""
        if self.min_budget_year > self.max_budget_year:
            raise ValueError("min_budget_year cannot be after max_budget_year")
        return self

    @property
    def supported_currency_list(self) -> list[str]:
        """Get supported currencies as a list of upper-case codes."""
        return [
            code.strip().upper()
            for code in self.supported_currencies.split(",")
            if code.strip()
        ]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "logging", "google_sheets"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
