"""
In-Memory Storage Implementation

Keeps every table in process memory. Used by the test suite and as the
default backend for local runs.

All writes run under one asyncio.Lock, which gives the same guarantees a
transactional database would for a single process: uniqueness checks and
the write that depends on them can't interleave with another request.
Records are copied on the way in and out so callers can't mutate stored
state behind the lock.
"""

import asyncio
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.ledger import Budget, Category, CurrencySet, Expense, User
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed implementation of the ledger storage interface."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._users: dict[int, User] = {}
        self._categories: dict[int, Category] = {}
        self._expenses: dict[int, Expense] = {}
        self._budgets: dict[int, Budget] = {}
        self._sequences = {"user": 0, "category": 0, "expense": 0, "budget": 0}

    def _next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def insert_user(self, user: User) -> User:
        async with self._lock:
            if any(u.email == user.email for u in self._users.values()):
                raise DuplicateError(f"Email already registered: {user.email}")
            stored = user.model_copy(update={"id": self._next_id("user")})
            self._users[stored.id] = stored
            return stored.model_copy()

    async def get_user(self, user_id: int) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def set_base_currency_if_unset(self, user_id: int, code: str) -> User:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")
            if not user.base_currency.is_set:
                user = user.model_copy(
                    update={"base_currency": CurrencySet(code=code)}
                )
                self._users[user_id] = user
            return user.model_copy()

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def insert_category(self, category: Category) -> Category:
        async with self._lock:
            for existing in self._categories.values():
                if (
                    existing.user_id == category.user_id
                    and existing.name_key == category.name_key
                ):
                    raise DuplicateError(f"Category already exists: {category.name}")
            stored = category.model_copy(update={"id": self._next_id("category")})
            self._categories[stored.id] = stored
            return stored.model_copy()

    async def get_category(self, category_id: int) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def list_categories(self, user_id: int) -> list[Category]:
        categories = [
            c.model_copy() for c in self._categories.values() if c.user_id == user_id
        ]
        categories.sort(key=lambda c: (c.name_key, c.id))
        return categories

    async def delete_category(self, category_id: int) -> bool:
        async with self._lock:
            if self._categories.pop(category_id, None) is None:
                return False
            now = datetime.utcnow()
            for expense_id, expense in list(self._expenses.items()):
                if expense.category_id == category_id:
                    self._expenses[expense_id] = expense.model_copy(
                        update={"category_id": None, "updated_at": now}
                    )
            for budget_id, budget in list(self._budgets.items()):
                if budget.category_id == category_id:
                    del self._budgets[budget_id]
            return True

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def insert_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            stored = expense.model_copy(update={"id": self._next_id("expense")})
            self._expenses[stored.id] = stored
            return stored.model_copy()

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def update_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            if expense.id not in self._expenses:
                raise NotFoundError(f"Expense not found: {expense.id}")
            stored = expense.model_copy(update={"updated_at": datetime.utcnow()})
            self._expenses[expense.id] = stored
            return stored.model_copy()

    async def delete_expense(self, expense_id: int) -> bool:
        async with self._lock:
            return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(
        self,
        user_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        expenses = []
        for expense in self._expenses.values():
            if expense.user_id != user_id:
                continue
            if date_from and expense.expense_date < date_from:
                continue
            if date_to and expense.expense_date > date_to:
                continue
            if category_id is not None and expense.category_id != category_id:
                continue
            expenses.append(expense.model_copy())

        expenses.sort(key=lambda e: (e.expense_date, e.id), reverse=True)
        return expenses

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _key_taken(self, budget: Budget) -> bool:
        return any(
            other.period_key == budget.period_key and other.id != budget.id
            for other in self._budgets.values()
        )

    async def insert_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            if self._key_taken(budget):
                raise DuplicateError(f"Budget already exists for {budget.period_key}")
            stored = budget.model_copy(update={"id": self._next_id("budget")})
            self._budgets[stored.id] = stored
            return stored.model_copy()

    async def get_budget(self, budget_id: int) -> Optional[Budget]:
        budget = self._budgets.get(budget_id)
        return budget.model_copy() if budget else None

    async def update_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            if budget.id not in self._budgets:
                raise NotFoundError(f"Budget not found: {budget.id}")
            if self._key_taken(budget):
                raise DuplicateError(f"Budget already exists for {budget.period_key}")
            stored = budget.model_copy(update={"updated_at": datetime.utcnow()})
            self._budgets[budget.id] = stored
            return stored.model_copy()

    async def delete_budget(self, budget_id: int) -> bool:
        async with self._lock:
            return self._budgets.pop(budget_id, None) is not None

    async def list_budgets(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> list[Budget]:
        budgets = [
            b.model_copy()
            for b in self._budgets.values()
            if b.user_id == user_id and b.year == year and b.month == month
        ]
        budgets.sort(key=lambda b: b.id)
        return budgets


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
