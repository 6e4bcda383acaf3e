# auditledger/verify/verifier.py
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

from auditledger.core.errors import CryptoPipelineError, LedgerCorruptionError
from auditledger.core.types import GENESIS, AuditEvent, CommitmentObject
from auditledger.crypto.hashing import commitment_hash, event_hash
from auditledger.crypto.keys import verify_signature
from auditledger.storage.persistence import Persistence


def _preview(value: str) -> str:
    return f"{str(value)[:8]}..."


@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    error_index: int = -1
    message: str = ""
    category: Optional[str] = None  # "hash_mismatch", "genesis", "chain_break", "storage", "signature"

    @property
    def error_msg(self) -> Optional[str]:
        return None if self.is_valid else self.message

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return f"Chain is valid ✓ {self.message}".rstrip()
        return f"Verification FAILED [{self.error_index}] {self.category}: {self.message}"


def _recompute(entry: AuditEvent, index: int) -> str:
    try:
        return event_hash(entry)
    except (TypeError, ValueError) as e:
        raise CryptoPipelineError(f"Cannot hash block {index}: {e}") from e


def verify_ledger(entries: List[AuditEvent]) -> VerificationResult:
    """
    Verify a stored chain given newest-first (the order it is held in).
    Single forward pass over the oldest-first view; stops at the first failure.
    Indices in the result refer to oldest-first positions.
    """
    if not entries:
        return VerificationResult(True, message="Empty chain is valid")

    log = list(reversed(entries))

    for i, entry in enumerate(log):
        calculated = _recompute(entry, i)

        if calculated != entry.hash:
            return VerificationResult(
                False, i,
                f"Hash Mismatch at Block {i}. Stored: {_preview(entry.hash)}, Calc: {_preview(calculated)}",
                "hash_mismatch",
            )

        if i == 0:
            if entry.previous_hash != GENESIS:
                return VerificationResult(
                    False, i, f"Invalid Genesis PreviousHash: {entry.previous_hash}", "genesis"
                )
        else:
            prev = log[i - 1]
            if entry.previous_hash != prev.hash:
                return VerificationResult(
                    False, i,
                    f"Chain Broken at Block {i}. PreviousHash {_preview(entry.previous_hash)} "
                    f"does not match Block {i - 1} Hash {_preview(prev.hash)}",
                    "chain_break",
                )

    return VerificationResult(True, message=f"{len(log)} blocks verified")


class LedgerVerifier:
    """
    Offline verifier for a persisted ledger and its commitment objects.
    trusted_keys (optional): fingerprint → public JWK, used for commitment signatures.
    """

    def __init__(self, trusted_keys: Optional[Dict[str, Dict[str, Any]]] = None):
        self.trusted_keys = trusted_keys or {}

    def verify(self, entries: List[AuditEvent]) -> VerificationResult:
        return verify_ledger(entries)

    def verify_from_storage(self, persistence: Persistence) -> VerificationResult:
        """
        Load the ledger from persistent storage and verify the chain.
        Returns a failed result (index -1) if the record cannot even be decoded.
        """
        try:
            entries = persistence.load_ledger()
        except LedgerCorruptionError as e:
            return VerificationResult(False, -1, str(e), "storage")

        return self.verify(entries or [])

    def verify_commitment(
        self,
        obj: CommitmentObject,
        signature: Optional[str] = None,
        signer_fingerprint: Optional[str] = None,
    ) -> VerificationResult:
        """Content hash must match; if a signature is supplied it must verify against a trusted key."""
        calculated = commitment_hash(obj)
        if calculated != obj.hash:
            return VerificationResult(
                False, 0,
                f"Commitment {obj.id} hash mismatch. Stored: {_preview(obj.hash)}, Calc: {_preview(calculated)}",
                "hash_mismatch",
            )

        if signature is not None:
            public_jwk = self.trusted_keys.get(signer_fingerprint or "")
            if public_jwk is None:
                return VerificationResult(False, 0, f"No trusted key for signer '{signer_fingerprint}'", "signature")
            if not verify_signature(public_jwk, signature, obj.hash):
                return VerificationResult(False, 0, f"Invalid signature on commitment {obj.id}", "signature")

        return VerificationResult(True, message=f"Commitment {obj.id} verified")
