"""
Abstract Storage Interface

DESIGN DECISION: The ledger treats storage as an opaque key-value blob
store. This allows us to:
1. Use an in-memory store for testing
2. Persist to plain JSON files on disk
3. Swap in any other backend without touching the engine

The interface is intentionally tiny - load, save, delete of JSON-able
values under string keys. Shape checks happen one level up, in the
repository.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from finledger.models.audit import AuditEvent


class BlobStorageInterface(ABC):
    """
    Abstract interface for key-value blob storage.

    Values are anything json.dumps accepts.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The decoded value, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """
        Store a value under a key, replacing what was there.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List every stored key."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify stored events.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one ledger session).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Key not found in storage."""
    pass
