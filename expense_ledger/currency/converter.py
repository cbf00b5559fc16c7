"""
Currency Converter

Turns an (amount, currency) pair into the user's base currency.

ROUNDING: converted amounts are quantized to cents with ROUND_HALF_EVEN
(banker's rounding), so many small conversions don't drift in one
direction. Same-currency amounts are returned untouched.

The converter never retries. A provider failure or a lookup slower than
the configured timeout surfaces as RateUnavailableError, and the caller
decides whether to try again.
"""

import asyncio
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Optional

import structlog

from expense_ledger.exceptions import RateUnavailableError
from expense_ledger.services.rates import RateProviderInterface

CENT = Decimal("0.01")


def multiply_to_cents(amount: Decimal, rate: Decimal) -> Decimal:
    """
    amount * rate rounded half-even to cents, exactly.

    Precision grows with the operands, so the product is never truncated
    and quantize never runs out of digits.
    """
    with localcontext() as ctx:
        ctx.prec = max(
            ctx.prec,
            len(amount.as_tuple().digits) + len(rate.as_tuple().digits) + 2,
        )
        product = amount * rate
        ctx.prec = max(ctx.prec, product.adjusted() + 3)
        return product.quantize(CENT, rounding=ROUND_HALF_EVEN)


class CurrencyConverter:
    """Converts amounts between currencies using a rate provider."""

    def __init__(
        self,
        provider: RateProviderInterface,
        timeout_seconds: Optional[float] = None,
    ):
        self._provider = provider
        self._timeout = timeout_seconds
        self._logger = structlog.get_logger(__name__)

    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        on: date,
    ) -> Decimal:
        """Fetch a positive rate, bounded by the configured timeout."""
        try:
            rate = await asyncio.wait_for(
                self._provider.get_rate(from_currency, to_currency, on),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                "rate_lookup_timed_out",
                from_currency=from_currency,
                to_currency=to_currency,
                date=on.isoformat(),
                timeout_seconds=self._timeout,
            )
            raise RateUnavailableError(
                from_currency, to_currency, on,
                reason=f"lookup timed out after {self._timeout}s",
            )
        except RateUnavailableError:
            raise
        except Exception as e:
            self._logger.warning(
                "rate_lookup_failed",
                from_currency=from_currency,
                to_currency=to_currency,
                date=on.isoformat(),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise RateUnavailableError(from_currency, to_currency, on, reason=str(e))

        try:
            rate = Decimal(str(rate))
        except InvalidOperation:
            raise RateUnavailableError(
                from_currency, to_currency, on, reason=f"provider returned {rate!r}"
            )
        if not rate.is_finite() or rate <= 0:
            raise RateUnavailableError(
                from_currency, to_currency, on, reason=f"provider returned {rate}"
            )
        return rate

    async def convert(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        on: date,
    ) -> Decimal:
        """
        Convert amount from one currency to another at the rate for `on`.

        Returns:
            amount itself when the currencies match, otherwise
            amount * rate rounded half-even to two decimal places

        Raises:
            RateUnavailableError: If no usable rate arrives in time
        """
        if from_currency == to_currency:
            return amount

        rate = await self.get_rate(from_currency, to_currency, on)
        converted = multiply_to_cents(amount, rate)

        self._logger.debug(
            "amount_converted",
            amount=str(amount),
            from_currency=from_currency,
            to_currency=to_currency,
            date=on.isoformat(),
            rate=str(rate),
            converted=str(converted),
        )
        return converted
