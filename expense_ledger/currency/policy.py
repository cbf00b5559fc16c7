"""
Base Currency Policy

The single enforcement point for the base currency rule:
Unset -> Set(code) happens exactly once and never reverses.

Two paths lead to the transition:
- ensure_base_currency(user, supplied): budget creation may set it once
  with an inline currency; expenses call it without one and only consume it
- set_base_currency(user, code): the explicit settings action, which
  refuses to touch a currency that is already set

Both go through the storage compare-and-set, so racing first writes
settle on one currency.
"""

from typing import Optional
from uuid import UUID

from expense_ledger.audit import AuditLogger
from expense_ledger.exceptions import BaseCurrencyAlreadySetError, BaseCurrencyRequiredError
from expense_ledger.models.ledger import CurrencySet, User
from expense_ledger.services.storage import LedgerStorageInterface


class BaseCurrencyPolicy:
    """Holds and validates the one-time base currency transition."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def ensure_base_currency(
        self,
        user: User,
        supplied: Optional[str] = None,
        source: str = "budget",
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Return the user's base currency, setting it from `supplied` if unset.

        An already-set currency is returned as is and `supplied` is ignored.

        Raises:
            BaseCurrencyRequiredError: If unset and nothing was supplied
        """
        if isinstance(user.base_currency, CurrencySet):
            return user.base_currency.code

        if supplied is None:
            raise BaseCurrencyRequiredError(
                "Please select your base currency before recording money movements.",
                details={"user_id": user.id},
            )

        return await self._transition(user, supplied, source, correlation_id)

    async def set_base_currency(
        self,
        user: User,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Explicitly set the base currency from account settings.

        Raises:
            BaseCurrencyAlreadySetError: If a base currency is already set
        """
        if isinstance(user.base_currency, CurrencySet):
            raise BaseCurrencyAlreadySetError(
                f"Base currency is already set to {user.base_currency.code}",
                details={"user_id": user.id, "base_currency": user.base_currency.code},
            )

        effective = await self._transition(user, code, "settings", correlation_id)
        if effective != code:
            # Lost a race against another first write
            raise BaseCurrencyAlreadySetError(
                f"Base currency is already set to {effective}",
                details={"user_id": user.id, "base_currency": effective},
            )
        return effective

    async def _transition(
        self,
        user: User,
        code: str,
        source: str,
        correlation_id: Optional[UUID],
    ) -> str:
        stored = await self._storage.set_base_currency_if_unset(user.id, code)
        effective = stored.base_currency.code

        if effective == code and self._audit_logger and correlation_id:
            await self._audit_logger.log_base_currency_set(
                user_id=user.id,
                currency=code,
                source=source,
                correlation_id=correlation_id,
            )
        return effective
