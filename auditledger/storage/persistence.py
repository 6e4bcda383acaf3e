# auditledger/storage/persistence.py
import json
import logging
from typing import Any, Dict, List, Optional

from auditledger.core.canon import json_ready
from auditledger.core.errors import KeyCorruptionError, LedgerCorruptionError
from auditledger.core.types import Asset, AuditEvent, CommitmentObject
from . import StorageBackend

logger = logging.getLogger(__name__)

LEDGER_KEY = "ledger"
COMMITMENTS_KEY = "commitments"
ASSETS_KEY = "assets"
IDENTITY_KEY = "identity"


class Persistence:
    """
    Typed access to the four independent records of a ledger store.
    Lists are stored exactly as held in memory (ledger and commitments newest-first).
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def _save(self, key: str, value: Any) -> bool:
        try:
            self.storage.put(key, json.dumps(json_ready(value), separators=(",", ":")))
            return True
        except Exception as e:
            logger.error("[ledger] Failed to save %s: %s", key, e)
            return False

    def _load_json(self, key: str) -> Optional[Any]:
        raw = self.storage.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    # ── audit ledger

    def save_ledger(self, entries: List[AuditEvent]) -> bool:
        return self._save(LEDGER_KEY, [e.to_dict() for e in entries])

    def load_ledger(self) -> Optional[List[AuditEvent]]:
        """Newest-first entries, or None when nothing was ever stored."""
        try:
            data = self._load_json(LEDGER_KEY)
            if data is None:
                return None
            if not isinstance(data, list):
                raise ValueError("ledger record is not a list")
            return [AuditEvent.from_dict(d) for d in data]
        except (ValueError, KeyError, TypeError) as e:
            raise LedgerCorruptionError(f"Stored ledger cannot be decoded: {e}") from e

    # ── commitment objects

    def save_commitments(self, objects: List[CommitmentObject]) -> bool:
        return self._save(COMMITMENTS_KEY, [o.to_dict() for o in objects])

    def load_commitments(self) -> List[CommitmentObject]:
        try:
            data = self._load_json(COMMITMENTS_KEY)
            return [CommitmentObject.from_dict(d) for d in data or []]
        except (ValueError, KeyError, TypeError) as e:
            raise LedgerCorruptionError(f"Stored commitment objects cannot be decoded: {e}") from e

    # ── assets

    def save_assets(self, assets: List[Asset]) -> bool:
        return self._save(ASSETS_KEY, [a.to_dict() for a in assets])

    def load_assets(self) -> Optional[List[Asset]]:
        try:
            data = self._load_json(ASSETS_KEY)
        except ValueError as e:
            logger.warning("[ledger] Stored assets unreadable, ignoring: %s", e)
            return None
        if data is None:
            return None
        return [Asset.from_dict(d) for d in data]

    # ── identity

    def save_identity(self, record: Dict[str, Any]) -> bool:
        return self._save(IDENTITY_KEY, record)

    def load_identity(self) -> Optional[Dict[str, Any]]:
        try:
            data = self._load_json(IDENTITY_KEY)
        except ValueError as e:
            raise KeyCorruptionError(f"Identity record is not valid JSON: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise KeyCorruptionError("Identity record is not an object")
        return data

    def clear_identity(self) -> None:
        self.storage.delete(IDENTITY_KEY)

    def clear_all(self) -> None:
        """Wipe chain state. The identity is kept on purpose."""
        for key in (LEDGER_KEY, COMMITMENTS_KEY, ASSETS_KEY):
            self.storage.delete(key)
        logger.info("[ledger] State wiped")
