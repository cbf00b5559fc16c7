"""
Spending Summaries

Totals over a filtered set of expenses, and a twelve-month series for a
year. All amounts are in the owner's base currency.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from expense_ledger.exceptions import InvalidPeriodError
from expense_ledger.models.ledger import ExpenseFilter, ExpenseSummary, MonthlyPoint
from expense_ledger.services.storage import LedgerStorageInterface

ZERO = Decimal("0.00")

# Fixed English labels; calendar.month_name follows the process locale
MONTH_LABELS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


class SummaryAggregator:
    """Aggregates expense totals."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def total_and_by_category(
        self,
        user_id: int,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> ExpenseSummary:
        """
        Total spending and a per-category-name breakdown.

        Uncategorized expenses count toward the total but have no entry
        in the breakdown.
        """
        expense_filter = expense_filter or ExpenseFilter()
        expenses = await self._storage.list_expenses(
            user_id,
            date_from=expense_filter.start_date,
            date_to=expense_filter.end_date,
            category_id=expense_filter.category_id,
        )
        names = {c.id: c.name for c in await self._storage.list_categories(user_id)}

        total = ZERO
        by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for expense in expenses:
            total += expense.amount_base
            if expense.category_id is not None and expense.category_id in names:
                by_category[names[expense.category_id]] += expense.amount_base

        return ExpenseSummary(
            total=total,
            total_by_category=dict(sorted(by_category.items())),
        )

    async def monthly_totals(self, user_id: int, year: int) -> list[MonthlyPoint]:
        """Exactly twelve points, January to December, zero for empty months."""
        if not date.min.year <= year <= date.max.year:
            raise InvalidPeriodError(
                f"Year out of range: {year}",
                details={"year": year},
            )

        expenses = await self._storage.list_expenses(
            user_id,
            date_from=date(year, 1, 1),
            date_to=date(year, 12, 31),
        )

        totals = [ZERO] * 12
        for expense in expenses:
            totals[expense.expense_date.month - 1] += expense.amount_base

        return [
            MonthlyPoint(month=month, label=MONTH_LABELS[month - 1], total=totals[month - 1])
            for month in range(1, 13)
        ]
