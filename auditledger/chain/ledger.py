# auditledger/chain/ledger.py
import logging
from enum import Enum
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from auditledger.core.errors import CryptoPipelineError, LedgerCorruptionError, LedgerHaltedError
from auditledger.core.types import GENESIS, AuditEvent, AuditMetadata, event_payload, utc_now
from auditledger.crypto.hashing import compute_hash
from auditledger.verify.verifier import VerificationResult, verify_ledger

logger = logging.getLogger(__name__)


class LedgerState(Enum):
    EMPTY = "EMPTY"
    SECURE = "SECURE"
    VERIFYING = "VERIFYING"
    COMPROMISED = "COMPROMISED"  # terminal for the process


def create_genesis(timestamp: Optional[str] = None) -> AuditEvent:
    """Synthetic first block. Its previousHash is the literal GENESIS sentinel."""
    timestamp = timestamp or utc_now()
    metadata = AuditMetadata(
        source_type="SYSTEM_GENERATED",
        source_identity="ROOT_ANCHOR",
        process_tool="SHA-256",
        context={"version": "1.0.0", "initialization": "TRUE", "architecture": "E24"},
    )
    payload = event_payload(
        GENESIS, timestamp, "SYSTEM", "HASHING", "GENESIS BLOCK",
        "System Initialization", metadata, "",
    )
    return AuditEvent(
        id="EVT-0000",
        timestamp=timestamp,
        actor="SYSTEM",
        action="HASHING",
        details="GENESIS BLOCK",
        hash=compute_hash(payload),
        previous_hash=GENESIS,
        metadata=metadata,
        rationale="System Initialization",
        signature="",
    )


@dataclass
class AuditLedger:
    """
    Append-only hash chain, held newest-first.
    The only mutation is accept(); once COMPROMISED nothing is accepted again.
    """
    events: List[AuditEvent] = field(default_factory=list)
    state: LedgerState = LedgerState.EMPTY
    halt_reason: str = ""

    def __post_init__(self):
        if self.events and self.state is LedgerState.EMPTY:
            self.state = LedgerState.SECURE

    @property
    def length(self) -> int:
        return len(self.events)

    @property
    def head(self) -> Optional[str]:
        """Hash of the most recently accepted entry."""
        if not self.events:
            return None
        return self.events[0].hash

    @property
    def is_halted(self) -> bool:
        return self.state is LedgerState.COMPROMISED

    def get_chain(self) -> List[AuditEvent]:
        """Returns copy of the chain, newest-first (immutable view)"""
        return self.events.copy()

    def oldest_first(self) -> List[AuditEvent]:
        return list(reversed(self.events))

    def snapshot(self) -> Tuple[AuditEvent, ...]:
        return tuple(self.events)

    def accept(self, event: AuditEvent) -> None:
        if self.is_halted:
            raise LedgerHaltedError(self.halt_reason)

        expected_prev = self.head or GENESIS
        if event.previous_hash != expected_prev:
            reason = (
                f"Append out of order: previousHash {event.previous_hash[:8]}... "
                f"does not match head {expected_prev[:8]}..."
            )
            self.halt(reason)
            raise LedgerCorruptionError(reason, index=self.length)

        self.events.insert(0, event)
        self.state = LedgerState.SECURE

    def verify(self) -> VerificationResult:
        """Verify a snapshot of the chain; a failure compromises the ledger."""
        if self.is_halted:
            return VerificationResult(False, -1, self.halt_reason, "halted")

        snapshot = list(self.snapshot())
        previous = self.state
        self.state = LedgerState.VERIFYING
        try:
            result = verify_ledger(snapshot)
        except CryptoPipelineError as e:
            self.halt(str(e))
            raise
        if result.is_valid:
            self.state = previous
        else:
            self.halt(result.message)
        return result

    def halt(self, reason: str) -> None:
        if not self.is_halted:
            logger.error("[ledger] HALT: %s", reason)
        self.state = LedgerState.COMPROMISED
        self.halt_reason = self.halt_reason or reason
