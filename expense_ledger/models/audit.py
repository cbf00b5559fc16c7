"""
Audit Models for Expense Ledger

Every ledger mutation and every rejected request is recorded.
This provides:
1. Traceability of how each stored amount came to be
2. Debugging information when a number looks wrong
3. Evidence of which rate produced a converted amount

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_REGISTERED = "user_registered"
    BASE_CURRENCY_SET = "base_currency_set"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"

    # Expenses
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"

    # Rejections and failures
    OPERATION_REJECTED = "operation_rejected"
    EXTERNAL_SERVICE_ERROR = "external_service_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'user')"
    )
    entity_id: Optional[int] = None
    user_id: Optional[int] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one ledger operation"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, correlation_id, description, details_json, error_code,
         error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id is not None else "",
            str(self.user_id) if self.user_id is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_recorded(expense, base_code, correlation_id)
        event = AuditEventBuilder.operation_rejected("create_budget", ...)
    """

    @staticmethod
    def user_registered(
        user_id: int,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"User registered: {email}",
        )

    @staticmethod
    def base_currency_set(
        user_id: int,
        currency: str,
        source: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BASE_CURRENCY_SET,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Base currency set to {currency}",
            details={
                "currency": currency,
                "source": source,
            },
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        user_id: int,
        category_id: int,
        name: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = "created" if event_type == AuditEventType.CATEGORY_CREATED else "deleted"
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Category {verb}: {name}",
            details=details or {},
        )

    @staticmethod
    def expense_changed(
        event_type: AuditEventType,
        user_id: int,
        expense_id: int,
        amount_base: str,
        correlation_id: UUID,
        original_amount: Optional[str] = None,
        original_currency: Optional[str] = None,
    ) -> AuditEvent:
        details = {"amount_base": amount_base}
        if original_currency:
            details["original_amount"] = original_amount
            details["original_currency"] = original_currency
        return AuditEvent(
            event_type=event_type,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Expense {event_type.value.split('_', 1)[1]}: {amount_base}",
            details=details,
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        user_id: int,
        budget_id: int,
        year: int,
        month: int,
        category_id: Optional[int],
        limit_amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        scope = f"category {category_id}" if category_id is not None else "overall"
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=budget_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=(
                f"Budget {event_type.value.split('_', 1)[1]}: "
                f"{year}-{month:02d} {scope}"
            ),
            details={
                "year": year,
                "month": month,
                "category_id": category_id,
                "limit_amount": limit_amount,
            },
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_code: str,
        error_message: str,
        user_id: Optional[int],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {error_code}",
            details={"operation": operation, **(details or {})},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
