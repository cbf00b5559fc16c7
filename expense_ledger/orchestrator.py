"""
Ledger Service

This module ties together all the components and defines the public
operations of the ledger: users, categories, expenses, budgets and the
read-side reports.

DESIGN DECISION: The service enforces the boundaries:
- Every operation returns an OperationResult; expected failures never
  escape as exceptions
- Requests are validated before anything is written
- Every mutation and every rejection is audited under one correlation id

Unexpected exceptions are defects. They are audited and re-raised.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from expense_ledger.audit import AuditLogger, create_correlation_id
from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.currency import BaseCurrencyPolicy, CurrencyConverter
from expense_ledger.exceptions import LedgerException, RateUnavailableError
from expense_ledger.ledger import (
    BudgetStore,
    CategoryStore,
    ExpenseLedger,
    UserDirectory,
    require_user,
)
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.errors import ErrorKind, LedgerError, OperationResult
from expense_ledger.models.ledger import (
    BaseCurrencyRequest,
    BudgetRequest,
    ExpenseFilter,
    ExpenseRequest,
)
from expense_ledger.reports import BudgetStatusCalculator, SummaryAggregator
from expense_ledger.services.rates import (
    CachedRateProvider,
    RateProviderInterface,
    StaticRateProvider,
)
from expense_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from expense_ledger.validation import RequestValidator

Amount = Union[Decimal, str, int]


class LedgerService:
    """
    Public entry point of the ledger.

    Each method:
    1. Opens a correlation id
    2. Validates the request
    3. Delegates to the owning component
    4. Audits the outcome and wraps it in an OperationResult
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        rate_provider: RateProviderInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        ledger_settings = settings or get_settings().ledger

        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = RequestValidator(ledger_settings)
        self._policy = BaseCurrencyPolicy(storage, self._audit_logger)
        self._converter = CurrencyConverter(
            rate_provider,
            timeout_seconds=ledger_settings.rate_timeout_seconds,
        )

        self.users = UserDirectory(storage, self._validator)
        self.categories = CategoryStore(storage, self._validator)
        self.expenses = ExpenseLedger(storage, self._policy, self._converter, self._validator)
        self.budgets = BudgetStore(storage, self._policy, self._validator)
        self.status = BudgetStatusCalculator(storage, ledger_settings)
        self.summary = SummaryAggregator(storage)

        self._logger = structlog.get_logger(__name__)

    # =========================================================================
    # ERROR BOUNDARY
    # =========================================================================

    async def _run(
        self,
        operation: str,
        user_id: Optional[int],
        action: Callable[[UUID], Awaitable[Any]],
    ) -> OperationResult:
        """Run one operation and turn expected failures into a result."""
        correlation_id = create_correlation_id()
        log = self._logger.bind(
            operation=operation,
            user_id=user_id,
            correlation_id=str(correlation_id),
        )

        try:
            value = await action(correlation_id)
        except LedgerException as e:
            error = e.to_error()
            if isinstance(e, RateUnavailableError):
                await self._audit_logger.log_external_service_error(
                    service="rate_provider",
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            await self._reject(operation, user_id, error, correlation_id)
            return OperationResult.fail(error)
        except NotFoundError as e:
            error = LedgerError.from_kind(ErrorKind.NOT_FOUND, str(e))
            await self._reject(operation, user_id, error, correlation_id)
            return OperationResult.fail(error)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            error = LedgerError.from_kind(
                ErrorKind.STORAGE_UNAVAILABLE,
                "Storage is temporarily unavailable",
                details={"reason": str(e)},
            )
            await self._reject(operation, user_id, error, correlation_id)
            return OperationResult.fail(error)
        except Exception as e:
            log.exception("operation_failed")
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation, "user_id": user_id},
                correlation_id=correlation_id,
            )
            raise

        log.debug("operation_succeeded")
        return OperationResult.ok(value)

    async def _reject(
        self,
        operation: str,
        user_id: Optional[int],
        error: LedgerError,
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_rejection(
            operation=operation,
            error_code=error.kind.value,
            error_message=error.message,
            user_id=user_id,
            correlation_id=correlation_id,
            details=error.details,
        )

    # =========================================================================
    # USERS
    # =========================================================================

    async def register_user(
        self,
        email: str,
        full_name: str,
        password_hash: str,
    ) -> OperationResult:
        """Register a user. Fails with EMAIL_TAKEN or INVALID_INPUT."""
        async def action(correlation_id: UUID):
            user = await self.users.register(email, full_name, password_hash)
            await self._audit_logger.log_user_registered(
                user_id=user.id,
                email=user.email,
                correlation_id=correlation_id,
            )
            return user

        return await self._run("register_user", None, action)

    async def get_user(self, user_id: int) -> OperationResult:
        async def action(correlation_id: UUID):
            return await self.users.get(user_id)

        return await self._run("get_user", user_id, action)

    async def set_base_currency(self, user_id: int, currency: str) -> OperationResult:
        """
        Choose the base currency from account settings.

        Succeeds with no value. Fails with ALREADY_SET once a currency
        is in place, whichever path set it.
        """
        async def action(correlation_id: UUID):
            request = self._validator.parse(BaseCurrencyRequest, currency=currency)
            self._validator.raise_for(self._validator.currency_issues(request.currency))
            user = await require_user(self._storage, user_id)
            await self._policy.set_base_currency(user, request.currency, correlation_id)
            return None

        return await self._run("set_base_currency", user_id, action)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def create_category(
        self,
        user_id: int,
        name: str,
        color: Optional[str] = None,
    ) -> OperationResult:
        async def action(correlation_id: UUID):
            category = await self.categories.create(user_id, name, color)
            await self._audit_logger.log_category_changed(
                AuditEventType.CATEGORY_CREATED, category, correlation_id
            )
            return category

        return await self._run("create_category", user_id, action)

    async def list_categories(self, user_id: int) -> OperationResult:
        async def action(correlation_id: UUID):
            return await self.categories.list_for_user(user_id)

        return await self._run("list_categories", user_id, action)

    async def delete_category(self, user_id: int, category_id: int) -> OperationResult:
        """Delete a category. Its expenses stay, uncategorized."""
        async def action(correlation_id: UUID):
            category = await self.categories.delete(user_id, category_id)
            await self._audit_logger.log_category_changed(
                AuditEventType.CATEGORY_DELETED, category, correlation_id
            )
            return None

        return await self._run("delete_category", user_id, action)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def _expense_request(
        self,
        amount: Amount,
        currency: str,
        expense_date: date,
        description: Optional[str],
        recurring: bool,
        category_id: Optional[int],
    ) -> ExpenseRequest:
        return self._validator.parse(
            ExpenseRequest,
            amount=amount,
            currency=currency,
            expense_date=expense_date,
            description=description,
            recurring=recurring,
            category_id=category_id,
        )

    async def create_expense(
        self,
        user_id: int,
        amount: Amount,
        currency: str,
        expense_date: date,
        description: Optional[str] = None,
        recurring: bool = False,
        category_id: Optional[int] = None,
    ) -> OperationResult:
        """
        Record an expense, converting it into the base currency if needed.

        Fails with BASE_CURRENCY_REQUIRED, RATE_UNAVAILABLE or INVALID_INPUT.
        Nothing is stored on failure.
        """
        async def action(correlation_id: UUID):
            request = self._expense_request(
                amount, currency, expense_date, description, recurring, category_id
            )
            expense = await self.expenses.create(user_id, request, correlation_id)
            await self._audit_logger.log_expense_changed(
                AuditEventType.EXPENSE_RECORDED, expense, correlation_id
            )
            return expense

        return await self._run("create_expense", user_id, action)

    async def update_expense(
        self,
        user_id: int,
        expense_id: int,
        amount: Amount,
        currency: str,
        expense_date: date,
        description: Optional[str] = None,
        recurring: bool = False,
        category_id: Optional[int] = None,
    ) -> OperationResult:
        """Replace an expense. Fails with NOT_FOUND, RATE_UNAVAILABLE or INVALID_INPUT."""
        async def action(correlation_id: UUID):
            request = self._expense_request(
                amount, currency, expense_date, description, recurring, category_id
            )
            expense = await self.expenses.update(user_id, expense_id, request, correlation_id)
            await self._audit_logger.log_expense_changed(
                AuditEventType.EXPENSE_UPDATED, expense, correlation_id
            )
            return expense

        return await self._run("update_expense", user_id, action)

    async def delete_expense(self, user_id: int, expense_id: int) -> OperationResult:
        async def action(correlation_id: UUID):
            expense = await self.expenses.delete(user_id, expense_id)
            await self._audit_logger.log_expense_changed(
                AuditEventType.EXPENSE_DELETED, expense, correlation_id
            )
            return None

        return await self._run("delete_expense", user_id, action)

    async def list_expenses(
        self,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> OperationResult:
        """Expenses newest first. Date bounds are inclusive."""
        async def action(correlation_id: UUID):
            expense_filter = self._validator.parse(
                ExpenseFilter,
                start_date=start_date,
                end_date=end_date,
                category_id=category_id,
            )
            return await self.expenses.list_for_user(user_id, expense_filter)

        return await self._run("list_expenses", user_id, action)

    # =========================================================================
    # BUDGETS
    # =========================================================================

    def _budget_request(
        self,
        year: int,
        month: int,
        limit_amount: Amount,
        category_id: Optional[int],
        currency: Optional[str],
    ) -> BudgetRequest:
        return self._validator.parse(
            BudgetRequest,
            year=year,
            month=month,
            limit_amount=limit_amount,
            category_id=category_id,
            currency=currency,
        )

    async def create_budget(
        self,
        user_id: int,
        year: int,
        month: int,
        limit_amount: Amount,
        category_id: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> OperationResult:
        """
        Create a budget and return its current status.

        `currency` sets the base currency on a user's first budget and is
        ignored afterwards.
        """
        async def action(correlation_id: UUID):
            request = self._budget_request(year, month, limit_amount, category_id, currency)
            budget = await self.budgets.create(user_id, request, correlation_id)
            await self._audit_logger.log_budget_changed(
                AuditEventType.BUDGET_CREATED, budget, correlation_id
            )
            return await self.status.status_for_budget(budget)

        return await self._run("create_budget", user_id, action)

    async def update_budget(
        self,
        user_id: int,
        budget_id: int,
        year: int,
        month: int,
        limit_amount: Amount,
        category_id: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> OperationResult:
        """Update a budget and return its current status."""
        async def action(correlation_id: UUID):
            request = self._budget_request(year, month, limit_amount, category_id, currency)
            budget = await self.budgets.update(user_id, budget_id, request, correlation_id)
            await self._audit_logger.log_budget_changed(
                AuditEventType.BUDGET_UPDATED, budget, correlation_id
            )
            return await self.status.status_for_budget(budget)

        return await self._run("update_budget", user_id, action)

    async def delete_budget(self, user_id: int, budget_id: int) -> OperationResult:
        async def action(correlation_id: UUID):
            budget = await self.budgets.delete(user_id, budget_id)
            await self._audit_logger.log_budget_changed(
                AuditEventType.BUDGET_DELETED, budget, correlation_id
            )
            return None

        return await self._run("delete_budget", user_id, action)

    # =========================================================================
    # REPORTS
    # =========================================================================

    async def get_budget_statuses(self, user_id: int, year: int, month: int) -> OperationResult:
        async def action(correlation_id: UUID):
            await require_user(self._storage, user_id)
            return await self.status.status_for(user_id, year, month)

        return await self._run("get_budget_statuses", user_id, action)

    async def get_summary(
        self,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> OperationResult:
        async def action(correlation_id: UUID):
            expense_filter = self._validator.parse(
                ExpenseFilter,
                start_date=start_date,
                end_date=end_date,
                category_id=category_id,
            )
            await require_user(self._storage, user_id)
            return await self.summary.total_and_by_category(user_id, expense_filter)

        return await self._run("get_summary", user_id, action)

    async def get_monthly_summary(self, user_id: int, year: int) -> OperationResult:
        """Twelve MonthlyPoint values for the year."""
        async def action(correlation_id: UUID):
            await require_user(self._storage, user_id)
            return await self.summary.monthly_totals(user_id, year)

        return await self._run("get_monthly_summary", user_id, action)


def create_app_components(
    settings: Optional[LedgerSettings] = None,
) -> tuple[LedgerService, LedgerStorageInterface, AuditStorageInterface]:
    """
    Factory function to create all application components.

    LEDGER_STORAGE_BACKEND picks the backend. A misconfigured Google Sheets
    backend raises instead of silently falling back to memory.

    Returns:
        (service, ledger_storage, audit_storage)
    """
    ledger_settings = settings or get_settings().ledger

    if ledger_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        sheets_client.connect()
        storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    if ledger_settings.static_rates_path:
        rate_provider = StaticRateProvider.from_file(ledger_settings.static_rates_path)
    else:
        rate_provider = StaticRateProvider()

    if ledger_settings.rate_cache_ttl_seconds > 0:
        rate_provider = CachedRateProvider(
            rate_provider,
            ttl_seconds=ledger_settings.rate_cache_ttl_seconds,
            max_entries=ledger_settings.rate_cache_max_entries,
        )

    service = LedgerService(
        storage=storage,
        rate_provider=rate_provider,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )
    return service, storage, audit_storage
