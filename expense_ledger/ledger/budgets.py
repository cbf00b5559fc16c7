"""
Budget Store

Owns monthly spending limits keyed by (user, year, month, category).
A budget without a category is the overall budget for its period.

The first budget a user creates may carry an inline currency, which
becomes the base currency. Later inline currencies are ignored rather
than rejected, so a client resubmitting the same form keeps working.
"""

from typing import Optional
from uuid import UUID

from expense_ledger.currency import BaseCurrencyPolicy
from expense_ledger.exceptions import DuplicateBudgetError, RecordNotFoundError
from expense_ledger.ledger.categories import check_category_owner
from expense_ledger.ledger.users import require_user
from expense_ledger.models.ledger import Budget, BudgetRequest
from expense_ledger.services.storage import DuplicateError, LedgerStorageInterface
from expense_ledger.validation import RequestValidator


def _duplicate(user_id: int, request: BudgetRequest) -> DuplicateBudgetError:
    scope = (
        f"category {request.category_id}"
        if request.category_id is not None
        else "all expenses"
    )
    return DuplicateBudgetError(
        f"A budget for {scope} in {request.year}-{request.month:02d} already exists",
        details={
            "user_id": user_id,
            "year": request.year,
            "month": request.month,
            "category_id": request.category_id,
        },
    )


class BudgetStore:
    """Create, update, delete and list budgets."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        policy: BaseCurrencyPolicy,
        validator: RequestValidator,
    ):
        self._storage = storage
        self._policy = policy
        self._validator = validator

    async def create(
        self,
        user_id: int,
        request: BudgetRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Create a budget.

        Raises:
            InvalidPeriodError / InvalidLimitError / InvalidInputError
            BaseCurrencyRequiredError: No base currency and none supplied
            DuplicateBudgetError: The period key is already taken
        """
        request = self._validator.check_budget(request)
        user = await require_user(self._storage, user_id)
        await check_category_owner(self._storage, user_id, request.category_id)
        await self._policy.ensure_base_currency(
            user,
            supplied=request.currency,
            source="budget",
            correlation_id=correlation_id,
        )

        budget = Budget(
            user_id=user_id,
            year=request.year,
            month=request.month,
            category_id=request.category_id,
            limit_amount=request.limit_amount,
        )
        try:
            return await self._storage.insert_budget(budget)
        except DuplicateError:
            raise _duplicate(user_id, request)

    async def update(
        self,
        user_id: int,
        budget_id: int,
        request: BudgetRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Change a budget's period, category or limit.

        Raises:
            RecordNotFoundError: Missing or owned by someone else
            DuplicateBudgetError: Another budget holds the new period key
        """
        request = self._validator.check_budget(request)
        existing = await self.get(user_id, budget_id)
        user = await require_user(self._storage, user_id)
        await check_category_owner(self._storage, user_id, request.category_id)
        await self._policy.ensure_base_currency(
            user,
            supplied=request.currency,
            source="budget",
            correlation_id=correlation_id,
        )

        updated = existing.model_copy(update={
            "year": request.year,
            "month": request.month,
            "category_id": request.category_id,
            "limit_amount": request.limit_amount,
        })
        try:
            return await self._storage.update_budget(updated)
        except DuplicateError:
            raise _duplicate(user_id, request)

    async def delete(self, user_id: int, budget_id: int) -> Budget:
        """Delete a budget and return what was deleted."""
        budget = await self.get(user_id, budget_id)
        if not await self._storage.delete_budget(budget_id):
            raise RecordNotFoundError("budget", budget_id)
        return budget

    async def get(self, user_id: int, budget_id: int) -> Budget:
        budget = await self._storage.get_budget(budget_id)
        if budget is None or budget.user_id != user_id:
            raise RecordNotFoundError("budget", budget_id)
        return budget

    async def list_for_period(self, user_id: int, year: int, month: int) -> list[Budget]:
        return await self._storage.list_budgets(user_id, year, month)
