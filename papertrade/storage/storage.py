"""Key/value storage service interfaces and implementations.

Provides the abstract storage interface, a JSON file-based implementation
and an in-memory implementation with identical serialization semantics.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when persisted data cannot be read or written."""


class IStorageService(ABC):
    """Abstract base class for storage services.

    Defines the interface for saving, loading, and deleting data
    with string keys.
    """

    @abstractmethod
    def save(self, key: str, data: Any) -> None:
        """Save data with the given key.

        Args:
            key: Unique identifier for the data
            data: JSON-serializable data to store
        """
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Load data for the given key.

        Args:
            key: Unique identifier for the data

        Returns:
            The stored data, or None if not found
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete data for the given key.

        Args:
            key: Unique identifier for the data to delete
        """
        ...


class JsonFileStorage(IStorageService):
    """JSON file-based storage implementation.

    Stores each key as a separate JSON file in the specified base directory.
    Writes go to a temporary file that replaces the target in one step, so a
    failed write never leaves a truncated document behind.
    """

    def __init__(self, base_path: str | Path) -> None:
        """Initialize the JSON file storage.

        Args:
            base_path: Directory path where JSON files will be stored
        """
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _get_file_path(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._base_path / f"{safe_key}.json"

    def path_for(self, key: str) -> Path:
        """Path of the JSON file that holds ``key``."""
        return self._get_file_path(key)

    def save(self, key: str, data: Any) -> None:
        """Save data to a JSON file.

        Raises:
            StorageError: If data is not JSON-serializable or the file
                cannot be written
        """
        file_path = self._get_file_path(key)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._base_path,
                prefix=f".{file_path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, file_path)
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Failed to save data for key '{key}': {e}")
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to save '{key}'") from e

    def load(self, key: str) -> Optional[Any]:
        """Load data from a JSON file.

        Returns:
            The stored data, or None if the file doesn't exist

        Raises:
            StorageError: If the file is corrupted or unreadable
        """
        file_path = self._get_file_path(key)
        if not file_path.exists():
            return None

        try:
            with file_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted data for key '{key}': {e}")
            raise StorageError(f"Corrupted data for '{key}'") from e
        except OSError as e:
            logger.error(f"Failed to load data for key '{key}': {e}")
            raise StorageError(f"Failed to load '{key}'") from e

    def delete(self, key: str) -> None:
        """Delete the JSON file for the given key, if any."""
        file_path = self._get_file_path(key)
        try:
            if file_path.exists():
                file_path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete data for key '{key}': {e}")
            raise StorageError(f"Failed to delete '{key}'") from e


class InMemoryStorage(IStorageService):
    """Process-local storage that keeps JSON text per key.

    Values are serialized on save and parsed on load, so callers never share
    mutable state with the store and non-serializable data fails the same
    way it does on disk.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, data: Any) -> None:
        try:
            text = json.dumps(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to save data for key '{key}': {e}")
            raise StorageError(f"Failed to save '{key}'") from e
        with self._lock:
            self._data[key] = text

    def load(self, key: str) -> Optional[Any]:
        with self._lock:
            text = self._data.get(key)
        return None if text is None else json.loads(text)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
