"""Ledger components: users, categories, expenses and budgets."""

from expense_ledger.ledger.users import UserDirectory, require_user
from expense_ledger.ledger.categories import CategoryStore, check_category_owner
from expense_ledger.ledger.expenses import ExpenseLedger
from expense_ledger.ledger.budgets import BudgetStore

__all__ = [
    "BudgetStore",
    "CategoryStore",
    "ExpenseLedger",
    "UserDirectory",
    "check_category_owner",
    "require_user",
]
