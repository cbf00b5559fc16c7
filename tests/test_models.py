"""
Tests for Expense Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests through the service with in-memory collaborators
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from expense_ledger.models.ledger import (
    BaseCurrency,
    Budget,
    Category,
    CurrencySet,
    CurrencyUnset,
    Expense,
    ExpenseFilter,
    ExpenseRequest,
    User,
)
from expense_ledger.models.errors import (
    ErrorCategory,
    ErrorKind,
    LedgerError,
    OperationResult,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_user_defaults_to_unset_currency(self):
        """A new user has no base currency."""
        user = User(email="a@example.com", full_name="A", password_hash="h")
        assert isinstance(user.base_currency, CurrencyUnset)
        assert not user.base_currency.is_set

    def test_user_email_lowercased(self):
        """Test that emails are normalized to lower case."""
        user = User(email="  Asha@Example.COM ", full_name="Asha", password_hash="h")
        assert user.email == "asha@example.com"

    def test_base_currency_discriminated_union(self):
        """Test that the two currency states parse from their tag."""
        adapter = TypeAdapter(BaseCurrency)
        assert adapter.validate_python({"state": "unset"}) == CurrencyUnset()
        assert adapter.validate_python({"state": "set", "code": "inr"}) == CurrencySet(code="INR")

    def test_currency_set_rejects_bad_code(self):
        """Test that a currency code must be three letters."""
        with pytest.raises(ValidationError):
            CurrencySet(code="RUPEE")

    def test_currency_set_is_frozen(self):
        """Test that a set currency can't be mutated in place."""
        currency = CurrencySet(code="INR")
        with pytest.raises(ValidationError):
            currency.code = "USD"

    def test_category_name_key_is_case_insensitive(self):
        """Test that category names compare case-insensitively."""
        assert Category(user_id=1, name="Food").name_key == Category(user_id=1, name="FOOD").name_key

    def test_category_rejects_bad_color(self):
        """Test that colors must be #RRGGBB."""
        with pytest.raises(ValidationError):
            Category(user_id=1, name="Food", color="red")

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Expense(user_id=1, amount_base=Decimal("-1.00"), expense_date=date(2024, 6, 1))

    def test_expense_original_fields_go_together(self):
        """Test that original amount and currency are stored as a pair."""
        with pytest.raises(ValidationError):
            Expense(
                user_id=1,
                amount_base=Decimal("830.00"),
                original_amount=Decimal("10.00"),
                expense_date=date(2024, 6, 1),
            )

    def test_expense_entered_as(self):
        """Test that entered_as returns what the user typed."""
        converted = Expense(
            user_id=1,
            amount_base=Decimal("830.00"),
            original_amount=Decimal("10.00"),
            original_currency="USD",
            expense_date=date(2024, 6, 1),
        )
        native = Expense(user_id=1, amount_base=Decimal("500.00"), expense_date=date(2024, 6, 1))

        assert converted.entered_as("INR") == (Decimal("10.00"), "USD")
        assert native.entered_as("INR") == (Decimal("500.00"), "INR")

    def test_budget_overall_and_period_key(self):
        """Test that a budget without a category is the overall budget."""
        budget = Budget(user_id=3, year=2024, month=6, limit_amount=Decimal("500.00"))
        assert budget.is_overall
        assert budget.period_key == (3, 2024, 6, None)

    def test_expense_filter_rejects_inverted_range(self):
        """Test that start date after end date is rejected."""
        with pytest.raises(ValidationError):
            ExpenseFilter(start_date=date(2024, 6, 30), end_date=date(2024, 6, 1))

    def test_expense_request_normalizes_currency(self):
        """Test that request currencies are stripped and upper-cased."""
        request = ExpenseRequest(amount="12.50", currency=" usd ", expense_date=date(2024, 6, 1))
        assert request.currency == "USD"
        assert request.amount == Decimal("12.50")


class TestErrorModels:
    """Tests for typed errors and results."""

    def test_error_kind_categories(self):
        """Test that every kind maps to its category."""
        assert ErrorKind.INVALID_PERIOD.category is ErrorCategory.VALIDATION_ERROR
        assert ErrorKind.DUPLICATE_BUDGET.category is ErrorCategory.BUSINESS_ERROR
        assert ErrorKind.RATE_UNAVAILABLE.category is ErrorCategory.DEPENDENCY_ERROR
        assert ErrorKind.NOT_FOUND.category is ErrorCategory.NOT_FOUND

    def test_only_dependency_errors_are_retryable(self):
        """Test that retryable is true exactly for dependency failures."""
        retryable = {kind for kind in ErrorKind if kind.retryable}
        assert retryable == {ErrorKind.RATE_UNAVAILABLE, ErrorKind.STORAGE_UNAVAILABLE}

    def test_ledger_error_from_kind(self):
        """Test that from_kind fills category and retryable."""
        error = LedgerError.from_kind(ErrorKind.RATE_UNAVAILABLE, "down")
        assert error.category is ErrorCategory.DEPENDENCY_ERROR
        assert error.retryable
        assert error.details == {}

    def test_operation_result_invariants(self):
        """Test that a result is either a success or carries an error."""
        assert OperationResult.ok(5).value == 5
        assert OperationResult.ok().kind is None

        failed = OperationResult.fail(LedgerError.from_kind(ErrorKind.NOT_FOUND, "gone"))
        assert not failed.success
        assert failed.kind is ErrorKind.NOT_FOUND

        with pytest.raises(ValidationError):
            OperationResult(success=False)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            description="Expense recorded",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_id=7,
            user_id=1,
            correlation_id=correlation_id,
            description="Budget created",
        )
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "budget_created"
        assert log_dict["entity_id"] == 7
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_id=3,
            description="Expense deleted",
            details={"amount_base": "10.00"},
        )
        row = event.to_sheets_row()

        assert len(row) == 12
        assert row[2] == "expense_deleted"
        assert row[5] == "3"
        assert row[6] == ""

    def test_audit_event_builder_expense_changed(self):
        """Test that converted expenses keep their original amount in details."""
        event = AuditEventBuilder.expense_changed(
            event_type=AuditEventType.EXPENSE_RECORDED,
            user_id=1,
            expense_id=2,
            amount_base="830.00",
            correlation_id=uuid4(),
            original_amount="10.00",
            original_currency="USD",
        )
        assert event.entity_type == "expense"
        assert event.details == {
            "amount_base": "830.00",
            "original_amount": "10.00",
            "original_currency": "USD",
        }
        assert event.description == "Expense recorded: 830.00"

    def test_audit_event_builder_operation_rejected(self):
        """Test that rejections are warnings carrying the error code."""
        event = AuditEventBuilder.operation_rejected(
            operation="create_budget",
            error_code="DUPLICATE_BUDGET",
            error_message="exists",
            user_id=1,
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "DUPLICATE_BUDGET"
        assert event.details["operation"] == "create_budget"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
