"""
Core Data Models for Expense Ledger

These models define the strict schemas for all data flowing through the ledger.
They are designed to:
1. Keep money in Decimal end to end (never float)
2. Make the base currency an explicit two-state value
3. Be serializable for storage and logging

DESIGN DECISION: Stored entities (User, Category, Expense, Budget) enforce
only shape and sign. Rules that depend on configuration (supported currencies,
plausible years) live in the request validator so they can be reported with
a precise error kind.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)


def _normalize_currency_code(value):
    if isinstance(value, str):
        return value.strip().upper()
    return value


CurrencyCode = Annotated[
    str,
    BeforeValidator(_normalize_currency_code),
    StringConstraints(pattern=r"^[A-Z]{3}$"),
]
"""ISO 4217 style code, normalized to upper case."""


# =============================================================================
# BASE CURRENCY - explicit Unset | Set(code)
# =============================================================================

class CurrencyUnset(BaseModel):
    """The user has not chosen a base currency yet."""
    model_config = ConfigDict(frozen=True)

    state: Literal["unset"] = "unset"

    @property
    def is_set(self) -> bool:
        return False


class CurrencySet(BaseModel):
    """
    The user's base currency.

    CRITICAL: Once a user holds a CurrencySet it is never replaced.
    There is no re-denomination of historical records.
    """
    model_config = ConfigDict(frozen=True)

    state: Literal["set"] = "set"
    code: CurrencyCode

    @property
    def is_set(self) -> bool:
        return True


BaseCurrency = Annotated[
    Union[CurrencyUnset, CurrencySet],
    Field(discriminator="state"),
]


# =============================================================================
# STORED ENTITIES
# =============================================================================

class User(BaseModel):
    """A ledger owner. Authentication details are opaque to the ledger."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        pattern=r"^[^@\s]+@[^@\s]+$",
    )
    full_name: str = Field(..., min_length=1, max_length=200)
    password_hash: str = Field(..., min_length=1)
    base_currency: BaseCurrency = Field(default_factory=CurrencyUnset)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('email')
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        """Emails are unique case-insensitively."""
        return v.lower()


class Category(BaseModel):
    """
    A user-defined expense category.

    Deleting a category detaches its expenses; it never deletes them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    user_id: int
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(
        default=None,
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Display color as #RRGGBB"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def name_key(self) -> str:
        """Key used for per-user name uniqueness."""
        return self.name.casefold()


class Expense(BaseModel):
    """
    A recorded expense.

    amount_base is always in the owner's base currency. The as-entered
    amount and currency are kept only when a conversion happened.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    user_id: int
    amount_base: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount in base currency")
    ]
    original_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2,
        description="Amount as entered, when it was converted"
    )
    original_currency: Optional[CurrencyCode] = None
    expense_date: date
    description: Optional[str] = Field(default=None, max_length=500)
    recurring: bool = False
    category_id: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_original_pair(self) -> 'Expense':
        """Original amount and currency are stored together or not at all."""
        if (self.original_amount is None) != (self.original_currency is None):
            raise ValueError(
                "original_amount and original_currency must be set together"
            )
        return self

    def entered_as(self, base_code: str) -> tuple[Decimal, str]:
        """Return the (amount, currency) pair the user originally entered."""
        if self.original_currency is not None:
            return self.original_amount, self.original_currency
        return self.amount_base, base_code


class Budget(BaseModel):
    """
    A monthly spending limit.

    category_id None makes it the overall budget for the period.
    At most one budget exists per (user_id, year, month, category_id).
    """

    id: Optional[int] = None
    user_id: int
    year: int
    month: int = Field(..., ge=1, le=12)
    category_id: Optional[int] = None
    limit_amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Limit in base currency")
    ]
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def period_key(self) -> tuple[int, int, int, Optional[int]]:
        return (self.user_id, self.year, self.month, self.category_id)

    @property
    def is_overall(self) -> bool:
        return self.category_id is None


# =============================================================================
# DERIVED VIEWS - computed on every read, never stored
# =============================================================================

class BudgetStatus(BaseModel):
    """A budget joined against the expenses of its period."""

    id: int
    user_id: int
    year: int
    month: int
    category_id: Optional[int] = None
    category_name: str
    limit_amount: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: int = Field(..., ge=0)
    is_over_budget: bool


class ExpenseFilter(BaseModel):
    """Filter for expense listings and summaries. Date bounds are inclusive."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_id: Optional[int] = None

    @model_validator(mode='after')
    def validate_range(self) -> 'ExpenseFilter':
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("Start date cannot be after end date")
        return self


class ExpenseSummary(BaseModel):
    """Total spending plus a per-category breakdown (uncategorized omitted)."""

    total: Decimal = Decimal("0.00")
    total_by_category: dict[str, Decimal] = Field(default_factory=dict)


class MonthlyPoint(BaseModel):
    """One month of a yearly spending series."""

    month: int = Field(..., ge=1, le=12)
    label: str
    total: Decimal = Decimal("0.00")


# =============================================================================
# REQUESTS - shape only, range rules live in the validator
# =============================================================================

class ExpenseRequest(BaseModel):
    """An expense as submitted by the caller, before conversion."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal
    currency: CurrencyCode
    expense_date: date
    description: Optional[str] = Field(default=None, max_length=500)
    recurring: bool = False
    category_id: Optional[int] = None


class BudgetRequest(BaseModel):
    """A budget as submitted by the caller."""

    year: int
    month: int
    limit_amount: Decimal
    category_id: Optional[int] = None
    currency: Optional[CurrencyCode] = Field(
        default=None,
        description="Only used to set the base currency on first use"
    )


class ValidationIssue(BaseModel):
    """A single validation issue found in a request."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Error kind this issue maps to (e.g. 'INVALID_PERIOD')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )


class BaseCurrencyRequest(BaseModel):
    """An explicit base currency choice from account settings."""

    currency: CurrencyCode
