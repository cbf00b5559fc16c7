"""
End-to-end tests through LedgerService with in-memory collaborators.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_ledger.config import LedgerSettings
from expense_ledger.exceptions import EmailTakenError
from expense_ledger.ledger import UserDirectory
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.errors import ErrorCategory, ErrorKind
from expense_ledger.models.ledger import Expense
from expense_ledger.orchestrator import LedgerService, create_app_components
from expense_ledger.services.rates import CachedRateProvider
from expense_ledger.services.storage import InMemoryLedgerStorage, StorageConnectionError

JUNE_1 = date(2024, 6, 1)


async def register(service, email="asha@example.com"):
    result = await service.register_user(email, "Asha Rao", "hash")
    assert result.success
    return result.value


class TestBaseCurrencyGate:
    """The base currency must exist before money is recorded."""

    async def test_expense_requires_base_currency(self, service):
        """Test that a user without a base currency can't record an expense."""
        user = await register(service)

        result = await service.create_expense(user.id, 10, "USD", JUNE_1)

        assert not result.success
        assert result.kind is ErrorKind.BASE_CURRENCY_REQUIRED
        assert result.error.category is ErrorCategory.BUSINESS_ERROR
        assert not result.error.retryable

    async def test_first_budget_sets_base_currency(self, service):
        """Test that an inline currency on the first budget sets it."""
        user = await register(service)

        result = await service.create_budget(user.id, 2024, 6, 500, currency="USD")

        assert result.success
        assert (await service.get_user(user.id)).value.base_currency.code == "USD"

    async def test_explicit_set_then_already_set(self, service):
        """Test the settings path and its ALREADY_SET refusal."""
        user = await register(service)

        first = await service.set_base_currency(user.id, "inr")
        second = await service.set_base_currency(user.id, "USD")

        assert first.success and first.value is None
        assert second.kind is ErrorKind.ALREADY_SET
        assert (await service.get_user(user.id)).value.base_currency.code == "INR"

    async def test_explicit_set_rejects_unsupported_currency(self, service):
        """Test that only supported currencies become a base currency."""
        user = await register(service)

        result = await service.set_base_currency(user.id, "XYZ")

        assert result.kind is ErrorKind.INVALID_INPUT
        assert not (await service.get_user(user.id)).value.base_currency.is_set


class TestExpenseScenarios:
    """Expense scenarios with base currency INR."""

    @pytest.fixture
    async def user(self, service):
        user = await register(service)
        await service.set_base_currency(user.id, "INR")
        return user

    async def test_inr_expense(self, service, user):
        """Test that 100 INR is stored as 100.00 with no original fields."""
        result = await service.create_expense(user.id, 100, "INR", JUNE_1)

        expense = result.value
        assert expense.amount_base == Decimal("100.00")
        assert expense.original_amount is None
        assert expense.original_currency is None

    async def test_usd_expense(self, service, user):
        """Test that 10 USD at 83.0 is 830.00 INR."""
        result = await service.create_expense(user.id, 10, "USD", JUNE_1)

        expense = result.value
        assert expense.amount_base == Decimal("830.00")
        assert expense.original_amount == Decimal("10.00")
        assert expense.original_currency == "USD"

    async def test_missing_rate_is_retryable(self, service, user):
        """Test that RATE_UNAVAILABLE is a retryable dependency error."""
        result = await service.create_expense(user.id, 10, "JPY", JUNE_1)

        assert result.kind is ErrorKind.RATE_UNAVAILABLE
        assert result.error.retryable
        assert (await service.list_expenses(user.id)).value == []

    async def test_malformed_amount_is_invalid_input(self, service, user):
        """Test that schema failures come back as INVALID_INPUT."""
        result = await service.create_expense(user.id, "ten", "INR", JUNE_1)

        assert result.kind is ErrorKind.INVALID_INPUT
        assert result.error.details["issues"][0]["field"] == "amount"

    async def test_oversized_amount_is_invalid_input(self, service, user):
        """Test that an amount past the configured maximum is refused, not converted."""
        result = await service.create_expense(
            user.id, "10000000000000000000000000.00", "USD", JUNE_1
        )

        assert result.kind is ErrorKind.INVALID_INPUT
        assert "cannot exceed" in result.error.message
        assert (await service.list_expenses(user.id)).value == []

    async def test_update_and_delete(self, service, user):
        """Test the expense lifecycle through the service."""
        created = (await service.create_expense(user.id, 10, "USD", JUNE_1)).value

        updated = await service.update_expense(
            user.id, created.id, 10, "USD", JUNE_1, description="Books"
        )
        deleted = await service.delete_expense(user.id, created.id)
        again = await service.delete_expense(user.id, created.id)

        assert updated.value.description == "Books"
        assert updated.value.amount_base == Decimal("830.00")
        assert deleted.success and deleted.value is None
        assert again.kind is ErrorKind.NOT_FOUND

    async def test_list_rejects_inverted_range(self, service, user):
        """Test that a start after the end is INVALID_INPUT."""
        result = await service.list_expenses(
            user.id, start_date=date(2024, 6, 30), end_date=date(2024, 6, 1)
        )
        assert result.kind is ErrorKind.INVALID_INPUT


class TestBudgetsThroughService:
    """Budgets, status and summaries through the service."""

    @pytest.fixture
    async def user(self, service):
        user = await register(service)
        await service.set_base_currency(user.id, "INR")
        return user

    async def test_create_returns_status(self, service, user):
        """Test that limit 500 with 600 spent reports remaining -100."""
        await service.create_expense(user.id, 600, "INR", JUNE_1)

        result = await service.create_budget(user.id, 2024, 6, 500)

        status = result.value
        assert status.remaining == Decimal("-100.00")
        assert status.percent_used == 120
        assert status.is_over_budget

    async def test_zero_limit_statuses(self, service, user):
        """Test zero limits with and without spending."""
        food = (await service.create_category(user.id, "Food")).value
        empty = (await service.create_budget(user.id, 2024, 6, 0)).value
        assert empty.percent_used == 0

        await service.create_expense(user.id, 50, "INR", JUNE_1, category_id=food.id)
        spent = (await service.create_budget(user.id, 2024, 6, 0, category_id=food.id)).value

        assert spent.percent_used == 999999

    async def test_duplicate_category_budget(self, service, user):
        """Test that a second budget for the same category and month fails."""
        food = (await service.create_category(user.id, "Food")).value
        await service.create_budget(user.id, 2024, 6, 500, category_id=food.id)

        result = await service.create_budget(user.id, 2024, 6, 300, category_id=food.id)

        assert result.kind is ErrorKind.DUPLICATE_BUDGET

    async def test_validation_kinds(self, service, user):
        """Test INVALID_PERIOD and INVALID_LIMIT."""
        bad_month = await service.create_budget(user.id, 2024, 13, 500)
        bad_limit = await service.create_budget(user.id, 2024, 6, -5)

        assert bad_month.kind is ErrorKind.INVALID_PERIOD
        assert bad_month.error.category is ErrorCategory.VALIDATION_ERROR
        assert bad_limit.kind is ErrorKind.INVALID_LIMIT

    async def test_oversized_limit_is_invalid_limit(self, service, user):
        """Test that a limit past the configured maximum is INVALID_LIMIT."""
        result = await service.create_budget(user.id, 2024, 6, "1000000000000000000000000.00")

        assert result.kind is ErrorKind.INVALID_LIMIT

    async def test_huge_stored_spending_still_reports(self, service, storage, user):
        """Test that status never faults however large the stored spending is."""
        await service.create_budget(user.id, 2024, 6, "0.01")
        await storage.insert_expense(Expense(
            user_id=user.id,
            amount_base=Decimal("1000000000000000000000000.00"),
            expense_date=JUNE_1,
        ))

        result = await service.get_budget_statuses(user.id, 2024, 6)

        assert result.success
        assert result.value[0].percent_used == 10 ** 28
        assert result.value[0].is_over_budget

    async def test_update_budget_returns_status(self, service, user):
        """Test that an update reports status for the new limit."""
        created = (await service.create_budget(user.id, 2024, 6, 500)).value
        await service.create_expense(user.id, 100, "INR", JUNE_1)

        result = await service.update_budget(user.id, created.id, 2024, 6, 400)

        assert result.value.limit_amount == Decimal("400.00")
        assert result.value.percent_used == 25

    async def test_statuses_are_idempotent(self, service, user):
        """Test that two reads with no writes agree."""
        await service.create_budget(user.id, 2024, 6, 500)
        await service.create_expense(user.id, 10, "USD", JUNE_1)

        first = await service.get_budget_statuses(user.id, 2024, 6)
        second = await service.get_budget_statuses(user.id, 2024, 6)

        assert first.value == second.value
        assert first.value[0].spent == Decimal("830.00")

    async def test_delete_budget(self, service, user):
        """Test that deleting twice is NOT_FOUND."""
        created = (await service.create_budget(user.id, 2024, 6, 500)).value

        assert (await service.delete_budget(user.id, created.id)).success
        assert (await service.delete_budget(user.id, created.id)).kind is ErrorKind.NOT_FOUND

    async def test_delete_category_detaches_expenses(self, service, user):
        """Test that expenses survive their category's deletion."""
        food = (await service.create_category(user.id, "Food")).value
        expense = (await service.create_expense(user.id, 5, "INR", JUNE_1, category_id=food.id)).value

        assert (await service.delete_category(user.id, food.id)).success

        [listed] = (await service.list_expenses(user.id)).value
        assert listed.id == expense.id
        assert listed.category_id is None

    async def test_summaries(self, service, user):
        """Test the summary and the monthly series."""
        food = (await service.create_category(user.id, "Food")).value
        await service.create_expense(user.id, 5, "INR", JUNE_1, category_id=food.id)
        await service.create_expense(user.id, 7, "INR", date(2024, 7, 4))

        summary = (await service.get_summary(user.id)).value
        monthly = (await service.get_monthly_summary(user.id, 2024)).value

        assert summary.total == Decimal("12.00")
        assert summary.total_by_category == {"Food": Decimal("5.00")}
        assert len(monthly) == 12
        assert monthly[5].label == "June"
        assert monthly[6].total == Decimal("7.00")


class TestUsersAndCategories:
    """Registration and category rules."""

    async def test_email_taken(self, service):
        """Test that a second registration for an email fails."""
        await register(service)
        result = await service.register_user("ASHA@example.com", "Other", "hash")
        assert result.kind is ErrorKind.EMAIL_TAKEN

    async def test_taken_email_found_before_insert(self, validator):
        """Test that registration looks the email up before writing."""
        storage = InsertCountingStorage()
        directory = UserDirectory(storage, validator)
        await directory.register("asha@example.com", "Asha Rao", "hash")

        with pytest.raises(EmailTakenError):
            await directory.register("ASHA@example.com", "Other", "hash")

        assert storage.user_inserts == 1

    async def test_duplicate_category(self, service):
        """Test that category names are unique per user."""
        user = await register(service)
        await service.create_category(user.id, "Food")
        result = await service.create_category(user.id, " food ")
        assert result.kind is ErrorKind.DUPLICATE_CATEGORY

    async def test_unknown_user(self, service):
        """Test that operations on an unknown user are NOT_FOUND."""
        assert (await service.get_user(404)).kind is ErrorKind.NOT_FOUND
        assert (await service.list_categories(404)).kind is ErrorKind.NOT_FOUND


class InsertCountingStorage(InMemoryLedgerStorage):
    def __init__(self):
        super().__init__()
        self.user_inserts = 0

    async def insert_user(self, user):
        self.user_inserts += 1
        return await super().insert_user(user)


class FlakyStorage(InMemoryLedgerStorage):
    async def insert_expense(self, expense):
        raise StorageConnectionError("sheet offline")


class ExplodingStorage(InMemoryLedgerStorage):
    async def list_budgets(self, user_id, year, month):
        raise ZeroDivisionError("bug")


class TestErrorBoundary:
    """How the service reports collaborator failures."""

    async def test_storage_failure_is_retryable(self, rates, audit_logger, ledger_settings):
        """Test that storage outages map to STORAGE_UNAVAILABLE."""
        service = LedgerService(FlakyStorage(), rates, audit_logger, ledger_settings)
        user = await register(service)
        await service.set_base_currency(user.id, "INR")

        result = await service.create_expense(user.id, 1, "INR", JUNE_1)

        assert result.kind is ErrorKind.STORAGE_UNAVAILABLE
        assert result.error.retryable

    async def test_defects_are_raised(self, rates, audit_logger, ledger_settings):
        """Test that unexpected exceptions are not turned into results."""
        service = LedgerService(ExplodingStorage(), rates, audit_logger, ledger_settings)
        user = await register(service)

        with pytest.raises(ZeroDivisionError):
            await service.get_budget_statuses(user.id, 2024, 6)

    async def test_rejections_are_audited(self, service, audit_storage):
        """Test that a refused request leaves an audit event."""
        user = await register(service)
        await service.create_expense(user.id, 10, "USD", JUNE_1)

        [latest] = await audit_storage.get_recent_events(limit=1)
        assert latest.event_type is AuditEventType.OPERATION_REJECTED
        assert latest.error_code == "BASE_CURRENCY_REQUIRED"


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self):
        """Test that the default wiring uses in-memory storage."""
        service, storage, _ = create_app_components(LedgerSettings(storage_backend="memory"))
        assert isinstance(service, LedgerService)
        assert isinstance(storage, InMemoryLedgerStorage)

    async def test_cached_rates_from_file(self, tmp_path):
        """Test that a rate file and a TTL produce a cached static provider."""
        path = tmp_path / "rates.json"
        path.write_text('{"USD/INR": "83.0"}')

        service, _, _ = create_app_components(LedgerSettings(
            storage_backend="memory",
            static_rates_path=str(path),
            rate_cache_ttl_seconds=60,
        ))

        assert isinstance(service._converter._provider, CachedRateProvider)
        user = await register(service)
        await service.set_base_currency(user.id, "INR")
        result = await service.create_expense(user.id, 10, "USD", JUNE_1)
        assert result.value.amount_base == Decimal("830.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
