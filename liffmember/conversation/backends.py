"""Key-value storage backends for the local conversation store.

Backends are tried in priority order by the store, so each one only has to
report failure precisely:

- ``StorageQuotaError``: the value does not fit (pruning may help)
- ``StorageAccessError``: the backend refuses access altogether
- ``StorageError``: anything else
"""

import errno
import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..client.errors import StorageAccessError, StorageError, StorageQuotaError

logger = logging.getLogger(__name__)

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}
_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class StorageBackend(ABC):
    """Abstract key-value backend."""

    name: str

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Missing keys are not an error."""
        ...


class FileStorageBackend(StorageBackend):
    """Persistent tier: one JSON file per key inside ``directory``."""

    def __init__(
        self,
        directory: Path,
        name: str = "file",
        quota_bytes: Optional[int] = None,
    ) -> None:
        self.directory = Path(directory)
        self.name = name
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except PermissionError as e:
            raise StorageAccessError(f"Storage access denied: {path}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        data = value.encode("utf-8")
        if self.quota_bytes is not None and len(data) > self.quota_bytes:
            raise StorageQuotaError(
                f"{len(data)} bytes exceeds the {self.quota_bytes} byte quota of '{self.name}'"
            )
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except PermissionError as e:
            raise StorageAccessError(f"Storage access denied: {path}") from e
        except OSError as e:
            tmp.unlink(missing_ok=True)
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaError(f"No space left for {path}") from e
            raise StorageError(f"Failed to write {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except PermissionError as e:
            raise StorageAccessError(f"Storage access denied: {path}") from e
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}") from e


class MemoryStorageBackend(StorageBackend):
    """Session tier: lives as long as the process.

    ``disabled`` makes every call raise ``StorageAccessError``, which is how a
    sandbox that forbids all storage looks to the store.
    """

    def __init__(
        self,
        name: str = "memory",
        quota_bytes: Optional[int] = None,
        disabled: bool = False,
    ) -> None:
        self.name = name
        self.quota_bytes = quota_bytes
        self.disabled = disabled
        self._data: dict[str, str] = {}

    def _check_access(self) -> None:
        if self.disabled:
            raise StorageAccessError(f"Storage backend '{self.name}' is disabled")

    def get(self, key: str) -> Optional[str]:
        self._check_access()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_access()
        if self.quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota_bytes:
                raise StorageQuotaError(
                    f"Quota of {self.quota_bytes} bytes exceeded in '{self.name}'"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._check_access()
        self._data.pop(key, None)


def default_backends(
    directory: Path, quota_bytes: Optional[int] = None
) -> list[StorageBackend]:
    """Persistent file tier first, then the in-process session tier."""
    return [
        FileStorageBackend(directory, name="file", quota_bytes=quota_bytes),
        MemoryStorageBackend(name="session"),
    ]
