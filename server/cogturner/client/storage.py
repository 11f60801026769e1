"""File-backed key/value storage with a size quota.

Behaves like browser ``localStorage``: string keys to string values, all
kept in one JSON document, and writes that would push the document past the
quota fail with StorageQuotaExceeded.
"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class StorageQuotaExceeded(Exception):
    def __init__(self, size: int, quota: int) -> None:
        self.size = size
        self.quota = quota
        super().__init__(f"Storage quota exceeded: {size} > {quota} bytes")


class LocalStorage:
    def __init__(self, path: Path | str, quota_bytes: int = DEFAULT_QUOTA_BYTES) -> None:
        self.path = Path(path)
        self.quota_bytes = quota_bytes

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        encoded = json.dumps(data).encode("utf-8")
        if len(encoded) > self.quota_bytes:
            raise StorageQuotaExceeded(len(encoded), self.quota_bytes)
        # Write-then-rename so a crash never leaves a half-written file
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(encoded)
            os.replace(tmp_path, self.path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
