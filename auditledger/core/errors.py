# auditledger/core/errors.py
"""
Error taxonomy.

Corruption and crypto-pipeline errors are systemic: they halt the ledger.
Key corruption is local and recovered by regenerating the identity.
Commitment/quorum errors reject a single request and leave no partial state.
"""

from typing import Optional


class LedgerError(Exception):
    """Base for all ledger errors."""


class LedgerCorruptionError(LedgerError):
    """Stored chain failed hash recomputation or linkage."""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class CryptoPipelineError(LedgerError):
    """Hashing or signing could not be performed."""


class LedgerHaltedError(LedgerError):
    """Raised by every mutating entry point once the ledger is halted."""

    def __init__(self, reason: str):
        super().__init__(f"Ledger is halted: {reason}. Wipe and reinitialize to recover.")
        self.reason = reason


class KeyCorruptionError(LedgerError):
    """Persisted identity could not be deserialized."""


class CommitmentError(LedgerError):
    """A commitment object request was rejected."""


class QuorumError(CommitmentError):
    """Not enough distinct signer marks for the governance mode."""
