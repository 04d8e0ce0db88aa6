"""
In-Memory Storage

Used by tests and by the `memory` storage backend. Values are JSON
round-tripped on save so callers cannot mutate what was stored.
"""

import json
from typing import Any, Optional

from finledger.services.storage.interface import BlobStorageInterface, StorageError


class InMemoryBlobStorage(BlobStorageInterface):
    """Dict-backed blob store."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' is not JSON serializable: {e}")

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)

    def load_raw(self, key: str) -> Optional[str]:
        """The stored JSON text, for tests that plant damaged data."""
        return self._data.get(key)

    def save_raw(self, key: str, text: str) -> None:
        self._data[key] = text
