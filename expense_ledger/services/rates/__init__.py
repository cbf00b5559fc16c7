"""Exchange rate providers package."""

from expense_ledger.services.rates.interface import RateProviderInterface
from expense_ledger.services.rates.static import StaticRateProvider
from expense_ledger.services.rates.cached import CachedRateProvider

__all__ = [
    "CachedRateProvider",
    "RateProviderInterface",
    "StaticRateProvider",
]
