"""
Cached Exchange Rate Provider

Exchange rates change over time, so rates are never cached across
requests without an explicit lifetime. This wrapper keeps each
(from, to, date) answer for at most `ttl_seconds` and holds at most
`max_entries` answers, evicting the oldest first. Failures are not cached.
"""

import time
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Callable

from expense_ledger.services.rates.interface import RateProviderInterface


class CachedRateProvider(RateProviderInterface):
    """TTL-bounded cache in front of another provider."""

    def __init__(
        self,
        provider: RateProviderInterface,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._provider = provider
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str, date], tuple[float, Decimal]] = OrderedDict()

    async def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        on: date,
    ) -> Decimal:
        key = (from_currency.upper(), to_currency.upper(), on)
        now = self._clock()

        cached = self._entries.get(key)
        if cached is not None:
            expires_at, rate = cached
            if now < expires_at:
                return rate
            del self._entries[key]

        rate = await self._provider.get_rate(from_currency, to_currency, on)

        self._entries[key] = (now + self._ttl, rate)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return rate
