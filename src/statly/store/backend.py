"""
Key-value backends shared by the configuration store and the stats cache.

Values are raw bytes. Every write to a key is atomic: a concurrent reader
sees either the previous value or the new one, never a torn write.
"""

import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Keys become file names, so keep them to a safe alphabet
_KEY_PATTERN = re.compile(r"[A-Za-z0-9_.\-]+")


class KeyValueStore(ABC):
    """Minimal bytes-valued key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """Return all stored keys."""
        pass

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @staticmethod
    def validate_key(key: str) -> str:
        if not isinstance(key, str) or not _KEY_PATTERN.fullmatch(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return key


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and for throwaway runs."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.validate_key(key)
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class FileStore(KeyValueStore):
    """
    Durable store keeping one file per key inside a directory.

    Writes go to a temporary file in the same directory followed by
    os.replace(), which is atomic on POSIX and Windows.
    """

    suffix = ".bin"

    def __init__(self, directory):
        self.directory = Path(directory).expanduser().resolve()
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"File store opened at {self.directory}")

    def _path(self, key: str) -> Path:
        return self.directory / f"{self.validate_key(key)}{self.suffix}"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        return sorted(
            p.name[: -len(self.suffix)]
            for p in self.directory.glob(f"*{self.suffix}")
            if not p.name.startswith(".")
        )
