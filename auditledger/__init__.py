# auditledger/__init__.py
"""
Auditledger: locally persisted, hash-chained audit ledger with tamper evidence.
Every administrative event is canonicalized (RFC 8785), digested (SHA-256) and
linked to its predecessor; commitment objects are content-addressed and signed
with a local ECDSA P-256 identity.

Fails closed: any integrity violation halts all further mutation.
"""

__version__ = "0.1.0-dev"

from auditledger.core.canon import ABSENT, canonicalize
from auditledger.core.types import GENESIS, AuditEvent, AuditMetadata, EventDraft
from auditledger.crypto.hashing import compute_hash, digest
from auditledger.crypto.keys import SignerKeyPair
from auditledger.verify.verifier import VerificationResult, verify_ledger
from auditledger.service import AuditService

__all__ = [
    "ABSENT", "canonicalize", "GENESIS", "AuditEvent", "AuditMetadata", "EventDraft",
    "compute_hash", "digest", "SignerKeyPair", "VerificationResult", "verify_ledger", "AuditService",
]
