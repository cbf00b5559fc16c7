"""
Expense Ledger - Source Package

The multi-currency ledger and budget-status engine behind a
personal finance tracker.

DESIGN PRINCIPLES:
1. Every ledger amount is stored in the user's base currency
2. The base currency is set once and never changes
3. Budget status is computed on demand, never stored
4. Expected failures come back as typed results, not exceptions
5. Storage and exchange rates are swappable collaborators
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
