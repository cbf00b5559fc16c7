"""
Budget Status Calculator

Joins budgets against the expenses of their period. Status is derived on
every read and never stored, so it can't drift from the ledger.

Rules:
- spent is the exact Decimal sum of amount_base for the period
- a category budget counts only that category's expenses
- the overall budget counts every expense of the period, including those
  already counted by category budgets
- percent_used rounds half up; a zero limit never divides
"""

import calendar
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

import structlog

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.exceptions import InvalidPeriodError
from expense_ledger.models.ledger import Budget, BudgetStatus, Expense
from expense_ledger.services.storage import LedgerStorageInterface

ZERO = Decimal("0.00")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def percent_used(spent: Decimal, limit: Decimal, cap: int = 999999) -> int:
    """
    Share of the limit spent, as a whole percentage.

    With a zero limit: 0 when nothing was spent, otherwise `cap`.
    """
    if limit > 0:
        with localcontext() as ctx:
            ratio = spent / limit * 100
            # quantize needs one digit per integer place of the ratio
            ctx.prec = max(ctx.prec, ratio.adjusted() + 2)
            return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return 0 if spent == 0 else cap


class BudgetStatusCalculator:
    """Computes BudgetStatus views for a user's month."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._logger = structlog.get_logger(__name__)

    def _check_period(self, year: int, month: int) -> None:
        settings = self._settings
        if not 1 <= month <= 12:
            raise InvalidPeriodError(
                f"Month must be between 1 and 12, got {month}",
                details={"year": year, "month": month},
            )
        if not settings.min_budget_year <= year <= settings.max_budget_year:
            raise InvalidPeriodError(
                f"Year must be between {settings.min_budget_year} and "
                f"{settings.max_budget_year}, got {year}",
                details={"year": year, "month": month},
            )

    async def _period_expenses(self, user_id: int, year: int, month: int) -> list[Expense]:
        start, end = month_bounds(year, month)
        return await self._storage.list_expenses(user_id, date_from=start, date_to=end)

    async def _category_names(self, user_id: int) -> dict[int, str]:
        categories = await self._storage.list_categories(user_id)
        return {category.id: category.name for category in categories}

    def _build(
        self,
        budget: Budget,
        expenses: list[Expense],
        category_names: dict[int, str],
    ) -> BudgetStatus:
        if budget.is_overall:
            matching = expenses
            category_name = self._settings.overall_budget_label
        else:
            matching = [e for e in expenses if e.category_id == budget.category_id]
            category_name = category_names.get(
                budget.category_id, f"Category {budget.category_id}"
            )

        spent = sum((e.amount_base for e in matching), ZERO)

        return BudgetStatus(
            id=budget.id,
            user_id=budget.user_id,
            year=budget.year,
            month=budget.month,
            category_id=budget.category_id,
            category_name=category_name,
            limit_amount=budget.limit_amount,
            spent=spent,
            remaining=budget.limit_amount - spent,
            percent_used=percent_used(
                spent, budget.limit_amount, self._settings.percent_used_cap
            ),
            is_over_budget=spent > budget.limit_amount,
        )

    async def status_for(self, user_id: int, year: int, month: int) -> list[BudgetStatus]:
        """
        Status of every budget in a month.

        Ordered overall budget first, then by category name, then id.

        Raises:
            InvalidPeriodError: If year or month is out of range
        """
        self._check_period(year, month)

        budgets = await self._storage.list_budgets(user_id, year, month)
        if not budgets:
            return []

        expenses = await self._period_expenses(user_id, year, month)
        category_names = await self._category_names(user_id)

        statuses = [self._build(b, expenses, category_names) for b in budgets]
        statuses.sort(key=lambda s: (
            s.category_id is not None,
            s.category_name.casefold(),
            s.id,
        ))

        self._logger.debug(
            "budget_status_computed",
            user_id=user_id,
            year=year,
            month=month,
            budgets=len(statuses),
            expenses=len(expenses),
        )
        return statuses

    async def status_for_budget(self, budget: Budget) -> BudgetStatus:
        """Status of a single budget."""
        expenses = await self._period_expenses(budget.user_id, budget.year, budget.month)
        category_names = await self._category_names(budget.user_id)
        return self._build(budget, expenses, category_names)
