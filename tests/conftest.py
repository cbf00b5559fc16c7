"""
Shared fixtures.

In-memory storage and a static rate table stand in for every external
system, so no test touches the network.
"""

from decimal import Decimal

import pytest

from expense_ledger.audit import AuditLogger
from expense_ledger.config import LedgerSettings
from expense_ledger.currency import BaseCurrencyPolicy, CurrencyConverter
from expense_ledger.ledger import BudgetStore, CategoryStore, ExpenseLedger, UserDirectory
from expense_ledger.models.ledger import CurrencySet, User
from expense_ledger.orchestrator import LedgerService
from expense_ledger.reports import BudgetStatusCalculator, SummaryAggregator
from expense_ledger.services.rates import StaticRateProvider
from expense_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from expense_ledger.validation import RequestValidator


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        storage_backend="memory",
        rate_timeout_seconds=1.0,
        rate_cache_ttl_seconds=0,
        static_rates_path=None,
    )


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def rates():
    provider = StaticRateProvider()
    provider.set_rate("USD", "INR", Decimal("83.0"))
    provider.set_rate("EUR", "INR", Decimal("90.125"))
    return provider


@pytest.fixture
def validator(ledger_settings):
    return RequestValidator(ledger_settings)


@pytest.fixture
def policy(storage, audit_logger):
    return BaseCurrencyPolicy(storage, audit_logger)


@pytest.fixture
def converter(rates):
    return CurrencyConverter(rates, timeout_seconds=1.0)


@pytest.fixture
def users(storage, validator):
    return UserDirectory(storage, validator)


@pytest.fixture
def categories(storage, validator):
    return CategoryStore(storage, validator)


@pytest.fixture
def expenses(storage, policy, converter, validator):
    return ExpenseLedger(storage, policy, converter, validator)


@pytest.fixture
def budgets(storage, policy, validator):
    return BudgetStore(storage, policy, validator)


@pytest.fixture
def calculator(storage, ledger_settings):
    return BudgetStatusCalculator(storage, ledger_settings)


@pytest.fixture
def aggregator(storage):
    return SummaryAggregator(storage)


@pytest.fixture
def service(storage, rates, audit_logger, ledger_settings):
    return LedgerService(
        storage=storage,
        rate_provider=rates,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )


@pytest.fixture
async def new_user(storage):
    """A registered user without a base currency."""
    return await storage.insert_user(User(
        email="asha@example.com",
        full_name="Asha Rao",
        password_hash="hash",
    ))


@pytest.fixture
async def inr_user(storage):
    """A registered user whose base currency is INR."""
    return await storage.insert_user(User(
        email="ravi@example.com",
        full_name="Ravi Kumar",
        password_hash="hash",
        base_currency=CurrencySet(code="INR"),
    ))
