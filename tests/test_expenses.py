"""
Tests for the expense ledger.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_ledger.exceptions import (
    BaseCurrencyRequiredError,
    InvalidInputError,
    RateUnavailableError,
    RecordNotFoundError,
)
from expense_ledger.models.ledger import Category, ExpenseFilter, ExpenseRequest, User


def request(amount, currency="INR", day=date(2024, 6, 10), **extra) -> ExpenseRequest:
    return ExpenseRequest(amount=amount, currency=currency, expense_date=day, **extra)


class TestCreateExpense:
    """Tests for ExpenseLedger.create."""

    async def test_base_currency_expense_kept_exactly(self, expenses, inr_user):
        """Test that a base-currency expense has no original fields."""
        expense = await expenses.create(inr_user.id, request("500.00"))

        assert expense.id is not None
        assert expense.amount_base == Decimal("500.00")
        assert expense.original_amount is None
        assert expense.original_currency is None

    async def test_foreign_expense_converted(self, expenses, inr_user):
        """Test that 10 USD is stored as 830.00 INR with its original."""
        expense = await expenses.create(inr_user.id, request("10", currency="USD"))

        assert expense.amount_base == Decimal("830.00")
        assert expense.original_amount == Decimal("10.00")
        assert expense.original_currency == "USD"

    async def test_requires_base_currency(self, expenses, storage, new_user):
        """Test that an expense never sets the base currency."""
        with pytest.raises(BaseCurrencyRequiredError):
            await expenses.create(new_user.id, request("10", currency="USD"))

        assert await storage.list_expenses(new_user.id) == []
        assert not (await storage.get_user(new_user.id)).base_currency.is_set

    async def test_missing_rate_persists_nothing(self, expenses, storage, inr_user):
        """Test that RATE_UNAVAILABLE leaves the ledger untouched."""
        with pytest.raises(RateUnavailableError):
            await expenses.create(inr_user.id, request("10", currency="JPY"))

        assert await storage.list_expenses(inr_user.id) == []

    async def test_rejects_negative_amount(self, expenses, inr_user):
        """Test that negative amounts are invalid input."""
        with pytest.raises(InvalidInputError):
            await expenses.create(inr_user.id, request("-1"))

    async def test_rejects_sub_cent_amount(self, expenses, inr_user):
        """Test that amounts need at most two decimal places."""
        with pytest.raises(InvalidInputError):
            await expenses.create(inr_user.id, request("1.005"))

    async def test_rejects_unsupported_currency(self, expenses, inr_user):
        """Test that currencies outside the supported list are invalid."""
        with pytest.raises(InvalidInputError):
            await expenses.create(inr_user.id, request("1", currency="XYZ"))

    async def test_rejects_foreign_category(self, expenses, storage, inr_user):
        """Test that another user's category is invalid input."""
        other = await storage.insert_user(User(email="o@example.com", full_name="O", password_hash="h"))
        category = await storage.insert_category(Category(user_id=other.id, name="Food"))

        with pytest.raises(InvalidInputError):
            await expenses.create(inr_user.id, request("1", category_id=category.id))

    async def test_unknown_user_not_found(self, expenses):
        """Test that an unknown user is NOT_FOUND."""
        with pytest.raises(RecordNotFoundError):
            await expenses.create(999, request("1"))


class TestUpdateExpense:
    """Tests for ExpenseLedger.update."""

    async def test_description_edit_keeps_amount_base(self, expenses, rates, inr_user):
        """Test that editing non-money fields doesn't re-convert."""
        expense = await expenses.create(inr_user.id, request("10", currency="USD"))
        rates.set_rate("USD", "INR", "90")

        updated = await expenses.update(
            inr_user.id, expense.id, request("10", currency="USD", description="Lunch")
        )

        assert updated.amount_base == Decimal("830.00")
        assert updated.description == "Lunch"

    async def test_amount_change_reconverts(self, expenses, rates, inr_user):
        """Test that a new amount is converted at the current rate."""
        expense = await expenses.create(inr_user.id, request("10", currency="USD"))
        rates.set_rate("USD", "INR", "90")

        updated = await expenses.update(inr_user.id, expense.id, request("20", currency="USD"))

        assert updated.amount_base == Decimal("1800.00")
        assert updated.original_amount == Decimal("20.00")

    async def test_switch_to_base_currency_clears_originals(self, expenses, inr_user):
        """Test that re-entering in the base currency drops the originals."""
        expense = await expenses.create(inr_user.id, request("10", currency="USD"))

        updated = await expenses.update(inr_user.id, expense.id, request("700"))

        assert updated.amount_base == Decimal("700.00")
        assert updated.original_amount is None
        assert updated.original_currency is None

    async def test_date_change_reconverts(self, expenses, rates, inr_user):
        """Test that moving the date uses the rate for the new date."""
        expense = await expenses.create(inr_user.id, request("10", currency="USD"))
        rates.set_rate("USD", "INR", "85", on=date(2024, 6, 11))

        updated = await expenses.update(
            inr_user.id, expense.id, request("10", currency="USD", day=date(2024, 6, 11))
        )

        assert updated.amount_base == Decimal("850.00")

    async def test_foreign_expense_not_found(self, expenses, storage, inr_user):
        """Test that another user's expense is NOT_FOUND."""
        expense = await expenses.create(inr_user.id, request("10"))
        other = await storage.insert_user(User(email="o@example.com", full_name="O", password_hash="h"))

        with pytest.raises(RecordNotFoundError):
            await expenses.update(other.id, expense.id, request("10"))


class TestDeleteAndListExpenses:
    """Tests for ExpenseLedger.delete and list_for_user."""

    async def test_delete_is_hard(self, expenses, storage, inr_user):
        """Test that a deleted expense is gone."""
        expense = await expenses.create(inr_user.id, request("10"))

        deleted = await expenses.delete(inr_user.id, expense.id)

        assert deleted.id == expense.id
        assert await storage.get_expense(expense.id) is None
        with pytest.raises(RecordNotFoundError):
            await expenses.delete(inr_user.id, expense.id)

    async def test_list_orders_newest_first(self, expenses, inr_user):
        """Test ordering by date descending, then id descending."""
        first = await expenses.create(inr_user.id, request("1", day=date(2024, 6, 1)))
        second = await expenses.create(inr_user.id, request("2", day=date(2024, 6, 5)))
        third = await expenses.create(inr_user.id, request("3", day=date(2024, 6, 5)))

        listed = await expenses.list_for_user(inr_user.id)

        assert [e.id for e in listed] == [third.id, second.id, first.id]

    async def test_list_bounds_inclusive(self, expenses, inr_user):
        """Test that start and end dates are included."""
        for day in (date(2024, 5, 31), date(2024, 6, 1), date(2024, 6, 30), date(2024, 7, 1)):
            await expenses.create(inr_user.id, request("1", day=day))

        listed = await expenses.list_for_user(
            inr_user.id,
            ExpenseFilter(start_date=date(2024, 6, 1), end_date=date(2024, 6, 30)),
        )

        assert [e.expense_date for e in listed] == [date(2024, 6, 30), date(2024, 6, 1)]

    async def test_list_by_category(self, expenses, storage, inr_user):
        """Test filtering on a category."""
        category = await storage.insert_category(Category(user_id=inr_user.id, name="Food"))
        await expenses.create(inr_user.id, request("1", category_id=category.id))
        await expenses.create(inr_user.id, request("2"))

        listed = await expenses.list_for_user(inr_user.id, ExpenseFilter(category_id=category.id))

        assert [e.amount_base for e in listed] == [Decimal("1.00")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
