"""
Audit Models for Finledger

Every ledger mutation, refusal and storage recovery is recorded.
This provides:
1. Traceability of every balance-affecting change
2. Debugging information when a mutation is refused
3. Visibility into silent storage fallbacks

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entries
    ENTRY_ADDED = "entry_added"
    ENTRY_DELETED = "entry_deleted"
    TRANSFER_ADDED = "transfer_added"
    TRANSFER_DELETED = "transfer_deleted"
    MUTATION_REJECTED = "mutation_rejected"

    # Registry
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    FIXED_EXPENSE_ADDED = "fixed_expense_added"
    FIXED_EXPENSE_UPDATED = "fixed_expense_updated"
    FIXED_EXPENSE_DELETED = "fixed_expense_deleted"
    COUNTRY_ADDED = "country_added"
    COUNTRY_DELETED = "country_deleted"

    # Persistence
    LEDGER_LOADED = "ledger_loaded"
    STORAGE_FALLBACK = "storage_fallback"
    PERSIST_FAILED = "persist_failed"

    # System events
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
    Every significant action creates one of these.
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
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income', 'expense', 'transfer', 'account')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id or name of the entity this event relates to"
    )

    # Correlation - one id per ledger session
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one session)"
    )

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_added("expense", 17, "Lunch", "12.50", correlation_id)
        event = AuditEventBuilder.mutation_rejected("add_expense", "validation_rejected", reason)
    """

    @staticmethod
    def entry_added(
        kind: str,
        entry_id: int,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type=kind,
            entity_id=str(entry_id),
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} added: {description} - {amount}",
            details={
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        kind: str,
        entry_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type=kind,
            entity_id=str(entry_id),
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} {entry_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def transfer_added(
        transfer_id: int,
        from_account: str,
        to_account: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_ADDED,
            entity_type="transfer",
            entity_id=str(transfer_id),
            correlation_id=correlation_id,
            description=f"Transfer {from_account} -> {to_account}: {amount}",
            details={
                "from": from_account,
                "to": to_account,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transfer_deleted(
        transfer_id: int,
        leg_ids: list[int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_DELETED,
            entity_type="transfer",
            entity_id=str(transfer_id),
            correlation_id=correlation_id,
            description=f"Transfer {transfer_id} deleted ({len(leg_ids)} legs)",
            details={
                "leg_ids": leg_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def mutation_rejected(
        operation: str,
        error_kind: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="mutation",
            entity_id=operation,
            correlation_id=correlation_id,
            description=f"{operation} refused: {error_kind}",
            error_code=error_kind,
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def registry_changed(
        event_type: AuditEventType,
        entity_type: str,
        name: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=name,
            correlation_id=correlation_id,
            description=f"{entity_type.replace('_', ' ').capitalize()} '{name}': {event_type.value}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def ledger_loaded(
        country: str,
        income_count: int,
        expense_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="country",
            entity_id=country,
            correlation_id=correlation_id,
            description=f"Ledger {country} loaded: {income_count} incomes, {expense_count} expenses",
            details={
                "incomes": income_count,
                "expenses": expense_count,
            },
        )

    @staticmethod
    def storage_fallback(
        key: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="storage_key",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Malformed data at '{key}', defaults substituted",
            error_message=reason,
        )

    @staticmethod
    def persist_failed(
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage_key",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Could not persist '{key}'",
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
