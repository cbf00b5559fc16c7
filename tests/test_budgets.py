"""
Tests for the budget store.
"""

import asyncio
from decimal import Decimal

import pytest

from expense_ledger.exceptions import (
    BaseCurrencyRequiredError,
    DuplicateBudgetError,
    InvalidInputError,
    InvalidLimitError,
    InvalidPeriodError,
    RecordNotFoundError,
)
from expense_ledger.models.ledger import BudgetRequest, Category


def budget_request(limit="500", year=2024, month=6, **extra) -> BudgetRequest:
    return BudgetRequest(year=year, month=month, limit_amount=limit, **extra)


class TestCreateBudget:
    """Tests for BudgetStore.create."""

    async def test_first_budget_sets_base_currency(self, budgets, storage, new_user):
        """Test that an inline currency sets the base currency once."""
        budget = await budgets.create(new_user.id, budget_request(currency="INR"))

        assert budget.limit_amount == Decimal("500.00")
        assert (await storage.get_user(new_user.id)).base_currency.code == "INR"

    async def test_first_budget_without_currency_fails(self, budgets, storage, new_user):
        """Test that a user without a base currency must supply one."""
        with pytest.raises(BaseCurrencyRequiredError):
            await budgets.create(new_user.id, budget_request())

        assert await storage.list_budgets(new_user.id, 2024, 6) == []

    async def test_later_inline_currency_ignored(self, budgets, storage, inr_user):
        """Test that a set base currency is never replaced."""
        await budgets.create(inr_user.id, budget_request(currency="USD"))

        assert (await storage.get_user(inr_user.id)).base_currency.code == "INR"

    async def test_invalid_month(self, budgets, inr_user):
        """Test that month 13 is INVALID_PERIOD."""
        with pytest.raises(InvalidPeriodError):
            await budgets.create(inr_user.id, budget_request(month=13))

    async def test_invalid_year(self, budgets, inr_user):
        """Test that years outside the configured range are INVALID_PERIOD."""
        with pytest.raises(InvalidPeriodError):
            await budgets.create(inr_user.id, budget_request(year=1999))

    async def test_negative_limit(self, budgets, inr_user):
        """Test that a negative limit is INVALID_LIMIT."""
        with pytest.raises(InvalidLimitError):
            await budgets.create(inr_user.id, budget_request(limit="-1"))

    async def test_period_error_wins_over_limit_error(self, budgets, inr_user):
        """Test that the most specific kind is reported."""
        with pytest.raises(InvalidPeriodError):
            await budgets.create(inr_user.id, budget_request(month=0, limit="-1"))

    async def test_rejected_request_never_sets_currency(self, budgets, storage, new_user):
        """Test that validation runs before the one-time currency write."""
        with pytest.raises(InvalidLimitError):
            await budgets.create(new_user.id, budget_request(limit="-1", currency="INR"))

        assert not (await storage.get_user(new_user.id)).base_currency.is_set

    async def test_unknown_category_never_sets_currency(self, budgets, storage, new_user):
        """Test that an unknown category is rejected before any write."""
        with pytest.raises(InvalidInputError):
            await budgets.create(new_user.id, budget_request(category_id=42, currency="INR"))

        assert not (await storage.get_user(new_user.id)).base_currency.is_set

    async def test_duplicate_overall_budget(self, budgets, inr_user):
        """Test that a period holds at most one overall budget."""
        await budgets.create(inr_user.id, budget_request())

        with pytest.raises(DuplicateBudgetError):
            await budgets.create(inr_user.id, budget_request(limit="700"))

    async def test_category_and_overall_coexist(self, budgets, storage, inr_user):
        """Test that category and overall budgets have distinct keys."""
        category = await storage.insert_category(Category(user_id=inr_user.id, name="Food"))

        await budgets.create(inr_user.id, budget_request())
        await budgets.create(inr_user.id, budget_request(category_id=category.id))

        assert len(await budgets.list_for_period(inr_user.id, 2024, 6)) == 2

    async def test_concurrent_duplicates_one_wins(self, budgets, storage, inr_user):
        """Test that racing creates for one key yield one success."""
        results = await asyncio.gather(
            budgets.create(inr_user.id, budget_request()),
            budgets.create(inr_user.id, budget_request()),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateBudgetError)
        assert len(await storage.list_budgets(inr_user.id, 2024, 6)) == 1


class TestUpdateDeleteBudget:
    """Tests for BudgetStore.update and delete."""

    async def test_update_limit(self, budgets, inr_user):
        """Test that an update changes the limit in place."""
        budget = await budgets.create(inr_user.id, budget_request())

        updated = await budgets.update(inr_user.id, budget.id, budget_request(limit="800"))

        assert updated.id == budget.id
        assert updated.limit_amount == Decimal("800.00")

    async def test_update_same_key_is_not_duplicate(self, budgets, inr_user):
        """Test that a budget doesn't collide with itself."""
        budget = await budgets.create(inr_user.id, budget_request())
        await budgets.update(inr_user.id, budget.id, budget_request())

    async def test_update_into_taken_key(self, budgets, inr_user):
        """Test that moving onto another budget's key is DUPLICATE_BUDGET."""
        await budgets.create(inr_user.id, budget_request(month=6))
        july = await budgets.create(inr_user.id, budget_request(month=7))

        with pytest.raises(DuplicateBudgetError):
            await budgets.update(inr_user.id, july.id, budget_request(month=6))

    async def test_delete_then_missing(self, budgets, inr_user):
        """Test that a deleted budget is NOT_FOUND afterwards."""
        budget = await budgets.create(inr_user.id, budget_request())

        await budgets.delete(inr_user.id, budget.id)

        with pytest.raises(RecordNotFoundError):
            await budgets.get(inr_user.id, budget.id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
