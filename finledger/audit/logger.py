"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
This provides:
1. Traceability of every balance-affecting change
2. The reason behind every refused mutation
3. Visibility into silent storage fallbacks

The audit logger:
- Is synchronous, like the engine it observes
- Gracefully handles failures (a broken audit sink never fails a mutation)
- Supports correlation IDs to trace the events of one ledger session
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.config import get_settings
from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finledger.services.storage.interface import AuditStorageInterface, StorageError


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            correlation_id: Attached to every event that does not carry one.
        """
        self._storage = storage
        self._correlation_id = correlation_id
        self._logger = structlog.get_logger("finledger.audit")
        self._events: list[AuditEvent] = []

    @property
    def correlation_id(self) -> Optional[UUID]:
        return self._correlation_id

    @property
    def events(self) -> list[AuditEvent]:
        """Events logged through this instance, oldest first."""
        return list(self._events)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if event.correlation_id is None and self._correlation_id is not None:
            event = event.model_copy(update={"correlation_id": self._correlation_id})
        self._events.append(event)

        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except (StorageError, OSError) as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_entry_added(self, kind: str, entry_id: int, description: str, amount: Decimal) -> None:
        self.log(AuditEventBuilder.entry_added(kind, entry_id, description, str(amount)))

    def log_entry_deleted(self, kind: str, entry_id: int) -> None:
        self.log(AuditEventBuilder.entry_deleted(kind, entry_id))

    def log_transfer_added(
        self,
        transfer_id: int,
        from_account: str,
        to_account: str,
        amount: Decimal,
    ) -> None:
        self.log(AuditEventBuilder.transfer_added(transfer_id, from_account, to_account, str(amount)))

    def log_transfer_deleted(self, transfer_id: int, leg_ids: list[int]) -> None:
        self.log(AuditEventBuilder.transfer_deleted(transfer_id, leg_ids))

    def log_mutation_rejected(self, operation: str, error_kind: str, reason: str) -> None:
        """Log a refused mutation."""
        self.log(AuditEventBuilder.mutation_rejected(operation, error_kind, reason))

    def log_registry_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        name: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.registry_changed(event_type, entity_type, name, details))

    def log_ledger_loaded(self, country: str, income_count: int, expense_count: int) -> None:
        self.log(AuditEventBuilder.ledger_loaded(country, income_count, expense_count))

    def log_storage_fallback(self, key: str, reason: str) -> None:
        self.log(AuditEventBuilder.storage_fallback(key, reason))

    def log_persist_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.persist_failed(key, error_message))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a ledger session opens.
    Pass it through all subsequent operations.
    """
    return uuid4()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route structured logs to stderr at the configured level.

    Applications call this once at startup; importing the library never
    touches the root logger.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, (level or get_settings().app.log_level).upper(), logging.INFO),
    )
