"""
storefront/client/storage.py - Durable client storage (localStorage-like key/value of strings).

Two backends:
- MemoryStorage: process-local, optional byte quota (used in tests and short-lived sessions).
- JsonFileStorage: one JSON object on disk, rewritten atomically on every change.

Every failure surfaces as StorageError.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from storefront.config import settings
from storefront.core.errors import StorageError


class ClientStorage:
    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(ClientStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None, quota_bytes: Optional[int] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(value) > self.quota_bytes:
                raise StorageError(f"Storage quota exceeded writing {key!r}")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(ClientStorage):
    def __init__(self, path=None):
        self.path = Path(path or settings.client_storage_file)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        tmp = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)
