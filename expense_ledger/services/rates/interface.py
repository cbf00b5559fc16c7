"""
Abstract Exchange Rate Provider

The ledger does not know where rates come from. A provider answers one
question: how many units of `to_currency` buy one unit of `from_currency`
on a given date.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal


class RateProviderInterface(ABC):
    """Source of exchange rates."""

    @abstractmethod
    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        on: date,
    ) -> Decimal:
        """
        Get the rate for converting from_currency into to_currency.

        Args:
            from_currency: Currency of the amount being converted
            to_currency: Target currency
            on: Date the rate applies to

        Returns:
            Positive Decimal rate

        Raises:
            RateUnavailableError: If no rate can be supplied for that date
        """
        pass
