"""
Static Exchange Rate Provider

Serves rates from an in-memory table, optionally loaded from a JSON file.
Used for tests and for deployments that pin rates by hand.

File format (keys are "FROM/TO", optionally suffixed with "@YYYY-MM-DD"):

    {
        "USD/INR": "83.0",
        "EUR/INR@2024-06-01": "90.12"
    }

A dated entry wins over an undated one. When only the opposite direction
is known, its reciprocal is used.
"""

import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from expense_ledger.exceptions import RateUnavailableError
from expense_ledger.services.rates.interface import RateProviderInterface


class StaticRateProvider(RateProviderInterface):
    """Rate table held in memory."""

    def __init__(self):
        self._rates: dict[tuple[str, str, Optional[date]], Decimal] = {}

    def set_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Union[Decimal, str],
        on: Optional[date] = None,
    ) -> None:
        """Register a rate, for one date or (on=None) for every date."""
        rate = Decimal(str(rate))
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {rate}")
        key = (from_currency.upper(), to_currency.upper(), on)
        self._rates[key] = rate

    def _lookup(self, from_currency: str, to_currency: str, on: date) -> Optional[Decimal]:
        for key in ((from_currency, to_currency, on), (from_currency, to_currency, None)):
            if key in self._rates:
                return self._rates[key]
        return None

    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        on: date,
    ) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        rate = self._lookup(from_currency, to_currency, on)
        if rate is not None:
            return rate

        inverse = self._lookup(to_currency, from_currency, on)
        if inverse is not None:
            return Decimal(1) / inverse

        raise RateUnavailableError(from_currency, to_currency, on)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticRateProvider":
        """Load a rate table from a JSON file."""
        provider = cls()
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        for key, value in data.items():
            pair, _, day = key.partition("@")
            from_currency, _, to_currency = pair.partition("/")
            if not from_currency or not to_currency:
                raise ValueError(f"Rate key must look like 'USD/INR', got {key!r}")
            try:
                provider.set_rate(
                    from_currency,
                    to_currency,
                    value,
                    on=date.fromisoformat(day) if day else None,
                )
            except InvalidOperation:
                raise ValueError(f"Rate for {key!r} is not a number: {value!r}")
        return provider
