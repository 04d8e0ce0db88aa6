"""
Blob-backed audit log.

Events are kept as one JSON list under a single key, oldest first,
capped at `max_events`.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from finledger.models.audit import AuditEvent
from finledger.services.storage.interface import (
    AuditStorageInterface,
    BlobStorageInterface,
    StorageError,
)


AUDIT_LOG_KEY = "auditLog"

logger = structlog.get_logger(__name__)


class BlobAuditStorage(AuditStorageInterface):
    """
    Audit events stored in the same blob store as the ledger.

    Audit events are append-only.
    """

    def __init__(
        self,
        storage: BlobStorageInterface,
        key: str = AUDIT_LOG_KEY,
        max_events: int = 1000,
    ):
        self._storage = storage
        self._key = key
        self._max_events = max_events

    def _read(self) -> list[AuditEvent]:
        raw = self._storage.load(self._key)
        if not isinstance(raw, list):
            return []
        events = []
        for item in raw:
            try:
                events.append(AuditEvent.model_validate(item))
            except ValidationError:
                continue
        return events

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            events = self._read()
            events.append(event)
            events = events[-self._max_events:]
            self._storage.save(self._key, [e.model_dump(mode="json") for e in events])
            return True
        except StorageError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._read() if e.correlation_id == correlation_id]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._read()))[:limit]

    def get_events_by_entity(self, entity_type: str, entity_id: Optional[str] = None) -> list[AuditEvent]:
        return [
            e for e in self._read()
            if e.entity_type == entity_type and (entity_id is None or e.entity_id == entity_id)
        ]
