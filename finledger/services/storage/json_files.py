"""
JSON File Storage

One `<key>.json` file per key under a data directory.

Writes go to a temporary file first and are renamed into place, so a
crash mid-write leaves the previous value intact. Transient OS errors
are retried with exponential backoff.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Optional

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finledger.config import get_settings
from finledger.services.storage.interface import BlobStorageInterface, StorageError


KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")

logger = structlog.get_logger(__name__)


class JsonFileBlobStorage(BlobStorageInterface):
    """
    Directory of JSON files.

    Corrupt files are not this layer's problem: load() raises StorageError
    and the repository decides what to fall back to.
    """

    def __init__(self, data_dir: Optional[str] = None, write_retries: Optional[int] = None):
        settings = get_settings().storage
        self._dir = Path(data_dir or settings.data_dir)
        self._retries = write_retries or settings.write_retries
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=0.1, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            for attempt in self._retrying():
                with attempt:
                    text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not read '{key}': {e}")

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for '{key}' is not valid JSON: {e}")

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' is not JSON serializable: {e}")

        tmp_path = path.with_suffix(".json.tmp")
        try:
            for attempt in self._retrying():
                with attempt:
                    tmp_path.write_text(payload, encoding="utf-8")
                    os.replace(tmp_path, path)
        except OSError as e:
            logger.error("blob_write_failed", key=key, error=str(e))
            raise StorageError(f"Could not write '{key}': {e}")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Could not delete '{key}': {e}")

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self._dir.glob("*.json"))
