"""
Expense Ledger

Owns expense records. Every write is normalized into the owner's base
currency on the way in:

- entered in the base currency: amount_base = amount, no original fields
- entered in another currency: amount_base = converted amount, and the
  as-entered amount and currency are kept for display

An edit only re-runs the conversion when the entered amount, currency or
date changed, so touching the description of an old foreign expense
doesn't silently move it to today's rate logic.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from expense_ledger.currency import BaseCurrencyPolicy, CurrencyConverter
from expense_ledger.exceptions import RecordNotFoundError
from expense_ledger.ledger.categories import check_category_owner
from expense_ledger.ledger.users import require_user
from expense_ledger.models.ledger import Expense, ExpenseFilter, ExpenseRequest
from expense_ledger.services.storage import LedgerStorageInterface
from expense_ledger.validation import RequestValidator


class ExpenseLedger:
    """Records, edits, deletes and lists expenses."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        policy: BaseCurrencyPolicy,
        converter: CurrencyConverter,
        validator: RequestValidator,
    ):
        self._storage = storage
        self._policy = policy
        self._converter = converter
        self._validator = validator

    async def _normalize(
        self,
        request: ExpenseRequest,
        base_code: str,
    ) -> tuple[Decimal, Optional[Decimal], Optional[str]]:
        """Return (amount_base, original_amount, original_currency)."""
        if request.currency == base_code:
            return request.amount, None, None

        amount_base = await self._converter.convert(
            request.amount,
            request.currency,
            base_code,
            request.expense_date,
        )
        return amount_base, request.amount, request.currency

    async def create(
        self,
        user_id: int,
        request: ExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record a new expense.

        Raises:
            InvalidInputError: Bad amount, currency or category
            BaseCurrencyRequiredError: The user has no base currency yet
            RateUnavailableError: Conversion needed but no rate arrived
        """
        request = self._validator.check_expense(request)
        user = await require_user(self._storage, user_id)
        await check_category_owner(self._storage, user_id, request.category_id)
        base_code = await self._policy.ensure_base_currency(
            user, correlation_id=correlation_id
        )

        amount_base, original_amount, original_currency = await self._normalize(
            request, base_code
        )

        expense = Expense(
            user_id=user_id,
            amount_base=amount_base,
            original_amount=original_amount,
            original_currency=original_currency,
            expense_date=request.expense_date,
            description=request.description,
            recurring=request.recurring,
            category_id=request.category_id,
        )
        return await self._storage.insert_expense(expense)

    async def update(
        self,
        user_id: int,
        expense_id: int,
        request: ExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Replace an expense's fields.

        Raises:
            RecordNotFoundError: Missing or owned by someone else
            InvalidInputError: Bad amount, currency or category
            RateUnavailableError: Re-conversion needed but no rate arrived
        """
        request = self._validator.check_expense(request)
        existing = await self.get(user_id, expense_id)
        user = await require_user(self._storage, user_id)
        await check_category_owner(self._storage, user_id, request.category_id)
        base_code = await self._policy.ensure_base_currency(
            user, correlation_id=correlation_id
        )

        entered_amount, entered_currency = existing.entered_as(base_code)
        unchanged = (
            request.amount == entered_amount
            and request.currency == entered_currency
            and request.expense_date == existing.expense_date
        )
        if unchanged:
            amount_base = existing.amount_base
            original_amount = existing.original_amount
            original_currency = existing.original_currency
        else:
            amount_base, original_amount, original_currency = await self._normalize(
                request, base_code
            )

        updated = existing.model_copy(update={
            "amount_base": amount_base,
            "original_amount": original_amount,
            "original_currency": original_currency,
            "expense_date": request.expense_date,
            "description": request.description,
            "recurring": request.recurring,
            "category_id": request.category_id,
        })
        return await self._storage.update_expense(updated)

    async def delete(self, user_id: int, expense_id: int) -> Expense:
        """Hard-delete an expense and return what was deleted."""
        expense = await self.get(user_id, expense_id)
        if not await self._storage.delete_expense(expense_id):
            raise RecordNotFoundError("expense", expense_id)
        return expense

    async def get(self, user_id: int, expense_id: int) -> Expense:
        expense = await self._storage.get_expense(expense_id)
        if expense is None or expense.user_id != user_id:
            raise RecordNotFoundError("expense", expense_id)
        return expense

    async def list_for_user(
        self,
        user_id: int,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        """
        List expenses, newest date first, ties broken by id descending.

        Date bounds are inclusive.
        """
        expense_filter = expense_filter or ExpenseFilter()
        await require_user(self._storage, user_id)
        expenses = await self._storage.list_expenses(
            user_id,
            date_from=expense_filter.start_date,
            date_to=expense_filter.end_date,
            category_id=expense_filter.category_id,
        )
        return sorted(expenses, key=lambda e: (e.expense_date, e.id), reverse=True)
