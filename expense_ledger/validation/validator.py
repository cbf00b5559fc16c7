"""
Request Validation

DESIGN DECISION: Validation happens in two distinct stages, before any write:

STAGE 1 - SCHEMA VALIDATION:
- Types and required fields, enforced by the pydantic request models
- Failures become INVALID_INPUT

STAGE 2 - RANGE VALIDATION:
- Supported currencies
- Amounts with at most two fractional digits, up to a configured maximum
- Budget year/month within range (INVALID_PERIOD)
- Non-negative budget limits (INVALID_LIMIT)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the whole request is rejected.
"""

from decimal import Decimal, localcontext
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.exceptions import (
    InvalidInputError,
    InvalidLimitError,
    InvalidPeriodError,
)
from expense_ledger.models.errors import ErrorKind
from expense_ledger.models.ledger import BudgetRequest, ExpenseRequest, ValidationIssue

M = TypeVar("M", bound=BaseModel)

CENT = Decimal("0.01")

# When several issues are found, the most specific kind is reported
_KIND_PRIORITY = [
    ErrorKind.INVALID_PERIOD,
    ErrorKind.INVALID_LIMIT,
    ErrorKind.INVALID_INPUT,
]

_KIND_EXCEPTIONS = {
    ErrorKind.INVALID_PERIOD: InvalidPeriodError,
    ErrorKind.INVALID_LIMIT: InvalidLimitError,
    ErrorKind.INVALID_INPUT: InvalidInputError,
}


def has_cents_precision(amount: Decimal) -> bool:
    """True if the amount is finite and has at most two fractional digits."""
    if not amount.is_finite():
        return False
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount == amount.quantize(CENT)


class RequestValidator:
    """
    Validates ledger requests.

    Stage 1: parse() builds a request model from raw arguments
    Stage 2: check_expense() / check_budget() apply range rules
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def parse(self, model: type[M], **data) -> M:
        """
        Stage 1: schema validation.

        Raises:
            InvalidInputError: listing every field pydantic rejected
        """
        try:
            return model(**data)
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "request",
                    issue_type=ErrorKind.INVALID_INPUT.value,
                    message=error["msg"],
                )
                for error in e.errors()
            ]
            raise self._to_exception(issues)

    def currency_issues(self, code: Optional[str], field: str = "currency") -> list[ValidationIssue]:
        """Report a currency outside the supported list."""
        if code is None or code in self._settings.supported_currency_list:
            return []
        return [ValidationIssue(
            field=field,
            issue_type=ErrorKind.INVALID_INPUT.value,
            message=f"Unsupported currency: {code}",
        )]

    def validate_expense(self, request: ExpenseRequest) -> list[ValidationIssue]:
        """Stage 2 for expenses. Returns all issues found."""
        issues = []

        if request.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type=ErrorKind.INVALID_INPUT.value,
                message="Amount cannot be negative",
            ))
        elif not has_cents_precision(request.amount):
            issues.append(ValidationIssue(
                field="amount",
                issue_type=ErrorKind.INVALID_INPUT.value,
                message="Amount must have at most two decimal places",
            ))
        elif request.amount > self._settings.max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type=ErrorKind.INVALID_INPUT.value,
                message=f"Amount cannot exceed {self._settings.max_amount}",
            ))

        issues.extend(self.currency_issues(request.currency))
        return issues

    def validate_budget(self, request: BudgetRequest) -> list[ValidationIssue]:
        """Stage 2 for budgets. Returns all issues found."""
        issues = []
        settings = self._settings

        if not 1 <= request.month <= 12:
            issues.append(ValidationIssue(
                field="month",
                issue_type=ErrorKind.INVALID_PERIOD.value,
                message=f"Month must be between 1 and 12, got {request.month}",
            ))
        if not settings.min_budget_year <= request.year <= settings.max_budget_year:
            issues.append(ValidationIssue(
                field="year",
                issue_type=ErrorKind.INVALID_PERIOD.value,
                message=(
                    f"Year must be between {settings.min_budget_year} and "
                    f"{settings.max_budget_year}, got {request.year}"
                ),
            ))

        if request.limit_amount < 0:
            issues.append(ValidationIssue(
                field="limit_amount",
                issue_type=ErrorKind.INVALID_LIMIT.value,
                message="Budget limit cannot be negative",
            ))
        elif not has_cents_precision(request.limit_amount):
            issues.append(ValidationIssue(
                field="limit_amount",
                issue_type=ErrorKind.INVALID_LIMIT.value,
                message="Budget limit must have at most two decimal places",
            ))
        elif request.limit_amount > settings.max_amount:
            issues.append(ValidationIssue(
                field="limit_amount",
                issue_type=ErrorKind.INVALID_LIMIT.value,
                message=f"Budget limit cannot exceed {settings.max_amount}",
            ))

        issues.extend(self.currency_issues(request.currency))
        return issues

    def check_expense(self, request: ExpenseRequest) -> ExpenseRequest:
        """Validate and return the request with its amount normalized to cents."""
        self.raise_for(self.validate_expense(request))
        return request.model_copy(update={"amount": request.amount.quantize(CENT)})

    def check_budget(self, request: BudgetRequest) -> BudgetRequest:
        """Validate and return the request with its limit normalized to cents."""
        self.raise_for(self.validate_budget(request))
        return request.model_copy(
            update={"limit_amount": request.limit_amount.quantize(CENT)}
        )

    def raise_for(self, issues: list[ValidationIssue]) -> None:
        """Raise the most specific validation exception if any issue is an error."""
        errors = [issue for issue in issues if issue.severity == "error"]
        if errors:
            raise self._to_exception(errors)

    def _to_exception(self, issues: list[ValidationIssue]) -> InvalidInputError:
        kinds = {issue.issue_type for issue in issues}
        kind = next(k for k in _KIND_PRIORITY if k.value in kinds)
        relevant = [issue for issue in issues if issue.issue_type == kind.value]
        message = "; ".join(issue.message for issue in relevant)
        return _KIND_EXCEPTIONS[kind](
            message,
            details={"issues": [issue.model_dump() for issue in issues]},
        )
