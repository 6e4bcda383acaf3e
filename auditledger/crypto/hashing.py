# auditledger/crypto/hashing.py
import hashlib
import re
from typing import Any, Union

from auditledger.core.canon import canonical_json
from auditledger.core.types import AuditEvent, CommitmentObject

HASH_PREFIX = "0x"
_DIGEST_RE = re.compile(r"^0x[0-9a-f]{64}$")


def digest(data: Union[bytes, bytearray, memoryview, str]) -> str:
    """SHA-256 as lowercase hex with a cosmetic 0x prefix. Strings are hashed as UTF-8."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return HASH_PREFIX + hashlib.sha256(bytes(data)).hexdigest()


def compute_hash(value: Any) -> str:
    """digest(canonicalize(value))"""
    return digest(canonical_json(value))


def event_hash(event: AuditEvent) -> str:
    """Recompute an event's digest from its payload (ignores the stored hash)."""
    return compute_hash(event.payload())


def commitment_hash(obj: CommitmentObject) -> str:
    return compute_hash(obj.content())


def is_digest(value: str) -> bool:
    return isinstance(value, str) and bool(_DIGEST_RE.match(value))
