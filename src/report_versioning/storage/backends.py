"""
Persistence backends for the version store.

A backend is a flat string key/value namespace. The store keeps one entry per
report holding the full JSON array of its versions; backends know nothing
about versions.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

import structlog

from ..exceptions import BackendCapacityError, BackendError

logger = structlog.get_logger(__name__)


def utf8_size(value: str) -> int:
    """Size of a string in bytes once encoded as UTF-8."""
    return len(value.encode("utf-8"))


class PersistenceBackend(ABC):
    """
    Abstract key/value backend.

    Implementations raise BackendError (or a subclass) when a read or write
    cannot be completed. Reads of missing keys return None; a failed read is
    never reported as a missing key.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All keys currently stored."""

    def size_of(self, key: str) -> int:
        """Byte size of the stored value (0 when absent)."""
        value = self.get(key)
        return utf8_size(value) if value is not None else 0

    def total_size(self) -> int:
        """Byte size of every key and value in the backend."""
        return sum(utf8_size(key) + self.size_of(key) for key in self.keys())


class InMemoryBackend(PersistenceBackend):
    """
    Dict-backed backend for tests and ephemeral sessions.

    ``capacity_bytes`` emulates a hard storage limit (like a browser's
    localStorage): a write that would push the total key+value size above it
    raises BackendCapacityError and leaves the previous value untouched.
    """

    def __init__(self, capacity_bytes: Optional[int] = None):
        self._data: Dict[str, str] = {}
        self.capacity_bytes = capacity_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.capacity_bytes is not None:
            projected = self.total_size() - self._entry_size(key) + utf8_size(key) + utf8_size(value)
            if projected > self.capacity_bytes:
                raise BackendCapacityError(
                    f"Write of {key} exceeds backend capacity "
                    f"({projected} > {self.capacity_bytes} bytes)"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def _entry_size(self, key: str) -> int:
        if key not in self._data:
            return 0
        return utf8_size(key) + utf8_size(self._data[key])


class FileBackend(PersistenceBackend):
    """
    One file per key inside a directory.

    Keys are percent-encoded into file names. Writes go to a temporary file
    that is atomically moved into place, so a crash never leaves a half
    written entry behind.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("file_backend_read_failed", path=str(path), error=str(e))
            raise BackendError(f"Could not read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("file_backend_write_failed", path=str(path), error=str(e))
            raise BackendError(f"Could not write {path}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BackendError(f"Could not remove entry {key}: {e}") from e

    def keys(self) -> List[str]:
        return [
            unquote(path.name[: -len(self.SUFFIX)])
            for path in self.directory.glob(f"*{self.SUFFIX}")
        ]

    def size_of(self, key: str) -> int:
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise BackendError(f"Could not stat entry {key}: {e}") from e
