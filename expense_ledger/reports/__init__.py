"""Read-side reports: budget status and spending summaries."""

from expense_ledger.reports.status import BudgetStatusCalculator, month_bounds, percent_used
from expense_ledger.reports.summary import MONTH_LABELS, SummaryAggregator

__all__ = [
    "BudgetStatusCalculator",
    "MONTH_LABELS",
    "SummaryAggregator",
    "month_bounds",
    "percent_used",
]
