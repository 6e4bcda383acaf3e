# auditledger/storage/memory.py
from typing import Dict, List, Optional

from . import StorageBackend


class MemoryStorage(StorageBackend):
    """Dict-backed store for tests and throwaway runs. Nothing survives the process."""

    def __init__(self):
        self._data: Optional[Dict[str, str]] = {}

    @property
    def data(self) -> Dict[str, str]:
        if self._data is None:
            raise RuntimeError("Storage connection is closed")
        return self._data

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self.data)

    def close(self) -> None:
        self._data = None
