# auditledger/commit/commitment.py
import itertools
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from auditledger.core.errors import CommitmentError, CryptoPipelineError, QuorumError
from auditledger.core.types import (
    AUTHORITY_LEVELS,
    COMMITMENT_TYPES,
    GOVERNANCE_MODES,
    AuditMetadata,
    CommitmentObject,
    EventDraft,
    utc_now,
)
from auditledger.crypto.hashing import commitment_hash, compute_hash
from auditledger.crypto.keyring import Keyring

logger = logging.getLogger(__name__)

SUMMARY_LIMIT = 100


@dataclass(frozen=True)
class QuorumPolicy:
    """How many distinct signer marks finalize a commitment, out of how many registered signers."""
    signer_count: int
    threshold: int

    def __post_init__(self):
        if self.signer_count < 1:
            raise ValueError("signer_count must be at least 1")
        if not 1 <= self.threshold <= self.signer_count:
            raise ValueError(f"threshold must be between 1 and {self.signer_count}, got {self.threshold}")

    @classmethod
    def sole(cls) -> "QuorumPolicy":
        return cls(signer_count=1, threshold=1)

    @classmethod
    def council(cls, signer_count: int = 3, threshold: int = 2) -> "QuorumPolicy":
        return cls(signer_count=signer_count, threshold=threshold)

    def check(self, marks: Sequence[str]) -> List[str]:
        """Return the cleaned marks, or raise QuorumError."""
        cleaned = [m.strip() for m in marks]
        if any(not m for m in cleaned):
            raise QuorumError("Blank signer mark")
        if len({m.upper() for m in cleaned}) != len(cleaned):
            raise QuorumError("Duplicate signer mark")
        if len(cleaned) < self.threshold:
            raise QuorumError(
                f"Quorum not reached: {len(cleaned)} of {self.threshold} required signatures"
            )
        if len(cleaned) > self.signer_count:
            raise QuorumError(
                f"Too many signatures: {len(cleaned)} for {self.signer_count} registered signers"
            )
        return cleaned


class CommitmentRegistry:
    """Append-only set of commitment objects, newest-first. Corrections are new objects that link back."""

    def __init__(self, objects: Optional[Iterable[CommitmentObject]] = None):
        self._objects: List[CommitmentObject] = list(objects or [])
        self._by_id: Dict[str, CommitmentObject] = {o.id: o for o in self._objects}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._by_id

    def all(self) -> List[CommitmentObject]:
        return self._objects.copy()

    def get(self, object_id: str) -> Optional[CommitmentObject]:
        return self._by_id.get(object_id)

    def add(self, obj: CommitmentObject) -> None:
        if obj.id in self._by_id:
            raise CommitmentError(f"Commitment object {obj.id} already exists")
        if commitment_hash(obj) != obj.hash:
            raise CommitmentError(f"Commitment object {obj.id} hash does not match its content")
        self._objects.insert(0, obj)
        self._by_id[obj.id] = obj

    def references_to(self, object_id: str) -> List[CommitmentObject]:
        """Objects that amend, dispute or chain to object_id."""
        return [o for o in self._objects if o.reference_id == object_id]

    def chain_of(self, object_id: str) -> List[CommitmentObject]:
        """Follow referenceId back-links from object_id, starting with the object itself."""
        chain = []
        seen = set()
        current = self._by_id.get(object_id)
        while current is not None and current.id not in seen:
            chain.append(current)
            seen.add(current.id)
            current = self._by_id.get(current.reference_id) if current.reference_id else None
        return chain


@dataclass(frozen=True)
class FinalizedCommitment:
    object: CommitmentObject
    signature: str              # identity signature over object.hash
    signer_fingerprint: str
    audit_draft: EventDraft     # APPROVAL / OVERRIDE entry to submit to the ledger


class CommitmentFactory:
    """
    Finalizes commitment objects: quorum check, content hash, identity signature.
    Nothing is registered unless every step succeeds.
    """

    def __init__(
        self,
        keyring: Keyring,
        registry: CommitmentRegistry,
        council_policy: QuorumPolicy = QuorumPolicy.council(),
        clock: Callable[[], str] = utc_now,
    ):
        self.keyring = keyring
        self.registry = registry
        self.council_policy = council_policy
        self._clock = clock
        self._counter = itertools.count(1)

    def policy_for(self, governance: str) -> QuorumPolicy:
        if governance == "SOLE_FIDUCIARY":
            return QuorumPolicy.sole()
        if governance == "JOINT_COUNCIL":
            return self.council_policy
        raise CommitmentError(f"Unknown governance mode: {governance}")

    def next_id(self) -> str:
        # time-bound, counter keeps ids distinct within the same millisecond
        return f"BFO-{int(time.time() * 1000)}-{next(self._counter):04d}"

    def finalize(
        self,
        *,
        commitment_type: str,
        summary: str,
        authority_level: str,
        governance: str,
        signatures: Sequence[str],
        reference_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> FinalizedCommitment:
        if commitment_type not in COMMITMENT_TYPES:
            raise CommitmentError(f"Unknown commitment type: {commitment_type}")
        if authority_level not in AUTHORITY_LEVELS:
            raise CommitmentError(f"Unknown authority level: {authority_level}")
        if governance not in GOVERNANCE_MODES:
            raise CommitmentError(f"Unknown governance mode: {governance}")
        if not summary or not summary.strip():
            raise CommitmentError("Commitment summary is empty")
        if reference_id is not None and reference_id not in self.registry:
            raise CommitmentError(f"Referenced commitment object {reference_id} does not exist")

        marks = self.policy_for(governance).check(signatures)

        content = CommitmentObject(
            id=self.next_id(),
            hash="",
            timestamp=self._clock(),
            type=commitment_type,
            status="IMMUTABLE",
            content_summary=summary.strip()[:SUMMARY_LIMIT],
            authority_level=authority_level,
            governance=governance,
            signatures=tuple(marks),
            reference_id=reference_id,
            path=path,
        )

        try:
            content_hash = compute_hash(content.content())
            keypair = self.keyring.keypair
            signature = keypair.sign(content_hash)
        except Exception as e:
            raise CryptoPipelineError(f"Cannot finalize {content.id}: {e}") from e

        obj = replace(content, hash=content_hash)
        self.registry.add(obj)

        fingerprint = keypair.fingerprint()
        action = "OVERRIDE" if authority_level == "OVERRIDE" else "APPROVAL"
        draft = EventDraft(
            id=f"EVT-{obj.id}",
            actor="USER",
            action=action,
            details=f"Committed to Vault. Authority: {authority_level}",
            rationale="Final Execution (Digitally Signed)",
            metadata=AuditMetadata(
                source_type="USER_INPUT",
                source_identity=f"KEY-{fingerprint}",
                governance_mode=governance,
                authority_level=authority_level,
                output_hash=content_hash,
                bfo_id=obj.id,
                context={
                    "bfoId": obj.id,
                    "finalHash": content_hash,
                    "signatureCount": len(marks),
                    "referenceId": reference_id,
                },
            ),
            signature=signature,
        )
        logger.info("[ledger] Finalized %s (%s, %d signature(s))", obj.id, governance, len(marks))
        return FinalizedCommitment(obj, signature, fingerprint, draft)
