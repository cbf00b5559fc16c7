"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger engine free of any persistence engine choice
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

Every write method is atomic with respect to the other writes of the same
storage instance. Uniqueness rules (email, category name per user, budget
period key) are enforced here, at the storage boundary, so two racing
requests can never both succeed.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.ledger import Budget, Category, Expense, User


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Ids are assigned by the storage.
    """

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_user(self, user: User) -> User:
        """
        Store a new user and return it with its id.

        Raises:
            DuplicateError: If the email is already registered
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        """Retrieve a user by id, or None."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user by (case-insensitive) email, or None."""
        pass

    @abstractmethod
    async def set_base_currency_if_unset(self, user_id: int, code: str) -> User:
        """
        Atomically set the user's base currency unless it is already set.

        This is a compare-and-set: when two requests race, the first
        one wins and both see the winning currency in the returned user.

        Args:
            user_id: The user to update
            code: Currency code to set

        Returns:
            The user as stored after the call

        Raises:
            NotFoundError: If the user doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_category(self, category: Category) -> Category:
        """
        Store a new category and return it with its id.

        Raises:
            DuplicateError: If the user already has a category with this name
        """
        pass

    @abstractmethod
    async def get_category(self, category_id: int) -> Optional[Category]:
        """Retrieve a category by id, or None."""
        pass

    @abstractmethod
    async def list_categories(self, user_id: int) -> list[Category]:
        """List a user's categories."""
        pass

    @abstractmethod
    async def delete_category(self, category_id: int) -> bool:
        """
        Delete a category.

        In the same atomic step, expenses in the category are detached
        (category_id set to None) and budgets scoped to it are removed.

        Returns:
            True if the category existed
        """
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_expense(self, expense: Expense) -> Expense:
        """Store a new expense and return it with its id."""
        pass

    @abstractmethod
    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Retrieve an expense by id, or None."""
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        """
        Replace a stored expense.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int) -> bool:
        """Hard-delete an expense. Returns True if it existed."""
        pass

    @abstractmethod
    async def list_expenses(
        self,
        user_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        """
        List a user's expenses with optional filters.

        Args:
            user_id: Owner of the expenses
            date_from: Only expenses on or after this date
            date_to: Only expenses on or before this date
            category_id: Only expenses in this category

        Returns:
            Matching expenses, newest first
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_budget(self, budget: Budget) -> Budget:
        """
        Store a new budget and return it with its id.

        Raises:
            DuplicateError: If a budget already holds the same
                (user_id, year, month, category_id)
        """
        pass

    @abstractmethod
    async def get_budget(self, budget_id: int) -> Optional[Budget]:
        """Retrieve a budget by id, or None."""
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        """
        Replace a stored budget.

        Raises:
            NotFoundError: If the budget doesn't exist
            DuplicateError: If another budget holds the new period key
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: int) -> bool:
        """Delete a budget. Returns True if it existed."""
        pass

    @abstractmethod
    async def list_budgets(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> list[Budget]:
        """List a user's budgets for one period."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one ledger operation).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to write a row that breaks a uniqueness rule."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
