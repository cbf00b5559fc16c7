"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every rejection is logged.
This provides:
1. Traceability of every stored amount
2. Debugging capability when totals look wrong
3. A record of which requests were refused and why

The audit logger:
- Is async to not block main flow
- Gracefully handles storage failures (an audit write never fails a ledger write)
- Supports correlation IDs to trace the events of one operation
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_ledger.config import get_settings
from expense_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from expense_ledger.models.ledger import Budget, Category, Expense
from expense_ledger.services.storage import AuditStorageInterface


def configure_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Defaults come from LoggingSettings (LOG_LEVEL, LOG_JSON_OUTPUT).
    """
    settings = get_settings().logging
    level = level or settings.level
    json_output = settings.json_output if json_output is None else json_output

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )
    logging.getLogger().setLevel(getattr(logging, level))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_registered(
        self,
        user_id: int,
        email: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new registration."""
        await self.log(AuditEventBuilder.user_registered(
            user_id=user_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_base_currency_set(
        self,
        user_id: int,
        currency: str,
        source: str,
        correlation_id: UUID,
    ) -> None:
        """Log the one-time base currency transition."""
        await self.log(AuditEventBuilder.base_currency_set(
            user_id=user_id,
            currency=currency,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        category: Category,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_changed(
            event_type=event_type,
            user_id=category.user_id,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
        ))

    async def log_expense_changed(
        self,
        event_type: AuditEventType,
        expense: Expense,
        correlation_id: UUID,
    ) -> None:
        """Log an expense write or delete, including the as-entered amount."""
        await self.log(AuditEventBuilder.expense_changed(
            event_type=event_type,
            user_id=expense.user_id,
            expense_id=expense.id,
            amount_base=_money(expense.amount_base),
            correlation_id=correlation_id,
            original_amount=_money(expense.original_amount),
            original_currency=expense.original_currency,
        ))

    async def log_budget_changed(
        self,
        event_type: AuditEventType,
        budget: Budget,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_changed(
            event_type=event_type,
            user_id=budget.user_id,
            budget_id=budget.id,
            year=budget.year,
            month=budget.month,
            category_id=budget.category_id,
            limit_amount=_money(budget.limit_amount),
            correlation_id=correlation_id,
        ))

    async def log_rejection(
        self,
        operation: str,
        error_code: str,
        error_message: str,
        user_id: Optional[int],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log a request refused with a typed error."""
        await self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            error_code=error_code,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of each ledger operation and pass it
    through every audit call the operation makes.
    """
    return uuid4()
