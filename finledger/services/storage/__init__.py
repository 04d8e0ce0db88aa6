"""
Storage Services Package

Provides the blob storage interface, in-memory and JSON-file
implementations, and the repository that maps ledgers onto keys.
"""

from finledger.config import get_settings
from finledger.services.storage.interface import (
    AuditStorageInterface,
    BlobStorageInterface,
    NotFoundError,
    StorageError,
)
from finledger.services.storage.memory import InMemoryBlobStorage
from finledger.services.storage.json_files import JsonFileBlobStorage
from finledger.services.storage.audit_store import BlobAuditStorage
from finledger.services.storage.repository import (
    LedgerRepository,
    LoadedLedger,
    StorageFallback,
    scoped_key,
)


def create_blob_storage() -> BlobStorageInterface:
    """Build the backend named in settings."""
    settings = get_settings().storage
    if settings.backend == "json":
        return JsonFileBlobStorage(settings.data_dir, settings.write_retries)
    return InMemoryBlobStorage()


__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BlobStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageError",
    # Implementations
    "BlobAuditStorage",
    "InMemoryBlobStorage",
    "JsonFileBlobStorage",
    # Repository
    "LedgerRepository",
    "LoadedLedger",
    "StorageFallback",
    "create_blob_storage",
    "scoped_key",
]
