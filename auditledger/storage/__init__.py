# auditledger/storage/__init__.py
"""
Storage backends for persisted ledger state.

Every backend is a plain key-value store holding JSON text under a handful
of well-known keys (see persistence.py). Chain semantics live above it.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from pathlib import Path


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        # Extract everything after sqlite://
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError("sqlite:// URI needs a database path")
        if raw_path.startswith("//"):
            raw_path = raw_path[1:]

        return SQLiteStorage(Path(raw_path).resolve())

    elif uri == "memory://" or uri == "memory:":
        from .memory import MemoryStorage
        return MemoryStorage()
    elif uri and "://" not in uri:
        # bare filesystem path
        from .sqlite import SQLiteStorage
        return SQLiteStorage(Path(uri).resolve())
    else:
        raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage
from .memory import MemoryStorage
from .persistence import Persistence

__all__ = ["StorageBackend", "create_storage", "SQLiteStorage", "MemoryStorage", "Persistence"]
