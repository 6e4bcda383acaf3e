# auditledger/service.py
"""
The single owner of ledger state.

Boots from storage (verify or create genesis), routes every append through the
AppendQueue, and fails closed: once halted, every mutating call raises
LedgerHaltedError until wipe_and_reinitialize().
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from auditledger.chain.ledger import AuditLedger
from auditledger.chain.queue import AppendQueue, Hasher
from auditledger.commit.commitment import (
    CommitmentFactory,
    CommitmentRegistry,
    FinalizedCommitment,
    QuorumPolicy,
)
from auditledger.commit.exhibit import ExhibitArtifact, seal_exhibit
from auditledger.config import LedgerConfig
from auditledger.core.errors import CryptoPipelineError, LedgerCorruptionError, LedgerHaltedError
from auditledger.core.types import Asset, AuditEvent, AuditMetadata, CommitmentObject, EventDraft, utc_now
from auditledger.crypto.hashing import compute_hash
from auditledger.crypto.keyring import Keyring
from auditledger.crypto.keys import SignerKeyPair, verify_signature
from auditledger.storage import create_storage
from auditledger.storage.persistence import Persistence
from auditledger.verify.verifier import VerificationResult, verify_ledger

logger = logging.getLogger(__name__)

PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"

DEFAULT_ASSETS = [
    Asset("1", "Acquisition Target Alpha", 10000000, "ACQUISITION_TARGET", "ENTITY"),
    Asset("2", "Sovereign Holding Corp", 2500000, "ACTIVE", "ENTITY"),
    Asset("3", "IP Portfolio: Trash Cats", 1200000, "ACTIVE", "IP"),
    Asset("4", "Liquid Reserves", 450000, "ACTIVE", "LIQUID"),
]


class ServiceStatus(Enum):
    BOOTING = "BOOTING"
    ONLINE = "ONLINE"
    HALTED = "HALTED"


class AuditService:

    def __init__(
        self,
        persistence: Persistence,
        config: Optional[LedgerConfig] = None,
        keyring: Optional[Keyring] = None,
        hasher: Hasher = compute_hash,
        clock: Callable[[], str] = utc_now,
    ):
        self.persistence = persistence
        self.config = config or LedgerConfig.from_env()
        self.keyring = keyring or Keyring(persistence)
        self._hasher = hasher
        self._clock = clock

        self.status = ServiceStatus.BOOTING
        self.halt_reason = ""
        self.anchor_hash: Optional[str] = None
        self.assets: List[Asset] = []
        self._reset_state()

    @classmethod
    def open(cls, config: Optional[LedgerConfig] = None, **kwargs) -> "AuditService":
        config = config or LedgerConfig.from_env()
        return cls(Persistence(create_storage(config.storage_uri)), config=config, **kwargs)

    def _reset_state(self, events: Optional[List[AuditEvent]] = None,
                     objects: Optional[List[CommitmentObject]] = None) -> None:
        self.ledger = AuditLedger(events=list(events or []))
        self.queue = AppendQueue(self.ledger, hasher=self._hasher, clock=self._clock)
        self.queue.on_accept(self._persist_ledger)
        self.queue.on_halt(self._halt)
        self.registry = CommitmentRegistry(objects)
        self.factory = CommitmentFactory(
            self.keyring,
            self.registry,
            QuorumPolicy.council(self.config.council_size, self.config.council_threshold),
            clock=self._clock,
        )

    # ── lifecycle

    def boot(self) -> ServiceStatus:
        """Restore and verify the stored chain, or create genesis on an empty store."""
        self.status = ServiceStatus.BOOTING
        self.halt_reason = ""
        try:
            stored = self.persistence.load_ledger()
            if stored:
                logger.info("[ledger] Found existing chain (%d blocks), verifying", len(stored))
                result = verify_ledger(stored)
                if not result.is_valid:
                    raise LedgerCorruptionError(f"PERSISTENCE CORRUPTION: {result.message}", result.error_index)
                self._reset_state(stored, self.persistence.load_commitments())
            else:
                logger.info("[ledger] No existing chain, creating genesis")
                self._reset_state()
                self.queue.bootstrap()

            assets = self.persistence.load_assets()
            if assets is None:
                assets = list(DEFAULT_ASSETS)
                self.persistence.save_assets(assets)
            self.assets = assets
        except Exception as e:
            logger.exception("[ledger] Boot failure")
            self._halt(str(e) or type(e).__name__)
            return self.status
        if self.is_halted:
            return self.status

        self.status = ServiceStatus.ONLINE
        logger.info("[ledger] Online, head %s", self.ledger.head)
        return self.status

    def wipe_and_reinitialize(self) -> ServiceStatus:
        """The only sanctioned recovery from a halt: discard chain state and boot fresh."""
        logger.warning("[ledger] Wiping chain state (identity kept)")
        self.persistence.clear_all()
        self.anchor_hash = None
        self._reset_state()
        return self.boot()

    @property
    def is_halted(self) -> bool:
        return self.status is ServiceStatus.HALTED

    def _halt(self, reason: str) -> None:
        self.ledger.halt(reason)
        self.status = ServiceStatus.HALTED
        self.halt_reason = self.halt_reason or reason

    def _ensure_online(self) -> None:
        if self.status is ServiceStatus.HALTED:
            raise LedgerHaltedError(self.halt_reason)
        if self.status is not ServiceStatus.ONLINE:
            raise RuntimeError("Service is not booted; call boot() first")

    def _ensure_loop(self) -> None:
        # raises RuntimeError outside a running loop, before any state is touched
        asyncio.get_running_loop()

    def _persist_ledger(self, event: AuditEvent) -> None:
        if not self.persistence.save_ledger(self.ledger.get_chain()):
            self._halt(f"{PERSISTENCE_FAILURE}: {event.id} could not be written to storage")

    # ── ledger

    def submit_event(self, draft: EventDraft) -> None:
        """Fire-and-forget append. Must be called from inside a running event loop."""
        self._ensure_online()
        self.queue.submit(draft)

    def get_chain_head(self) -> Optional[str]:
        return self.ledger.head

    def get_chain(self) -> List[AuditEvent]:
        return self.ledger.get_chain()

    def verify(self) -> VerificationResult:
        """On-demand integrity check over a snapshot. A failure halts the service."""
        try:
            result = self.ledger.verify()
        except CryptoPipelineError as e:
            self._halt(str(e))
            return VerificationResult(False, -1, str(e), "crypto")
        if not result.is_valid:
            self._halt(result.message)
        return result

    async def flush(self) -> VerificationResult:
        """Wait for the queue to drain, then verify what landed."""
        await self.queue.join()
        return self.verify()

    # ── identity & signatures

    def create_identity(self, force_new: bool = False) -> SignerKeyPair:
        return self.keyring.load_or_create(force_new=force_new)

    def get_fingerprint(self) -> str:
        return self.keyring.fingerprint()

    def public_jwk(self) -> Dict[str, str]:
        return self.keyring.keypair.public_jwk()

    def sign(self, digest_str: str) -> str:
        try:
            return self.keyring.keypair.sign(digest_str)
        except Exception as e:
            self._halt(f"SIGNING_PIPELINE_FAILURE: {e}")
            raise CryptoPipelineError(str(e)) from e

    @staticmethod
    def verify_signature(signature: str, digest_str: str, public_jwk: Dict[str, Any]) -> bool:
        return verify_signature(public_jwk, signature, digest_str)

    # ── commitment objects

    def commit(
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
        """Finalize, persist and log a commitment object. Quorum errors leave no trace."""
        self._ensure_online()
        self._ensure_loop()
        try:
            finalized = self.factory.finalize(
                commitment_type=commitment_type,
                summary=summary,
                authority_level=authority_level,
                governance=governance,
                signatures=signatures,
                reference_id=reference_id,
                path=path,
            )
        except CryptoPipelineError as e:
            self._halt(str(e))
            raise
        self.persistence.save_commitments(self.registry.all())
        self.queue.submit(finalized.audit_draft)
        return finalized

    def seal_exhibit(self, artifacts: Sequence[ExhibitArtifact]) -> Tuple[dict, CommitmentObject]:
        self._ensure_online()
        self._ensure_loop()
        manifest, obj, draft = seal_exhibit(artifacts, self._clock())
        self.registry.add(obj)
        self.persistence.save_commitments(self.registry.all())
        self.queue.submit(draft)
        return manifest, obj

    def get_commitments(self) -> List[CommitmentObject]:
        return self.registry.all()

    # ── collaborator-facing helpers

    def anchor(self, target: str = "LOCAL_RECORD") -> str:
        """
        Record that the current head was handed out for external publication.
        The publishing itself belongs to the caller.
        """
        self._ensure_online()
        root = self.ledger.head
        self.queue.submit(EventDraft(
            id=f"ANCHOR-{self._clock()}",
            actor="SYSTEM",
            action="EXTERNAL_ANCHOR_PUBLISHED",
            details=f"Root Hash Committed to Public Record: {root}",
            rationale="Non-Repudiation Checkpoint",
            metadata=AuditMetadata(
                source_type="SYSTEM_GENERATED",
                source_hash=root,
                process_tool="Public_Ledger_Bridge_v1",
                context={"target": target, "timestamp": self._clock()},
            ),
        ))
        self.anchor_hash = root
        return root

    def record_collaborator_failure(
        self,
        collaborator: str,
        error: Exception | str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """A remote helper failed: log it as an auditable SYSTEM_HALT entry (the chain keeps running)."""
        self._ensure_online()
        self.queue.submit(EventDraft(
            id=f"EVT-FAIL-{self._clock()}",
            actor="SYSTEM_FAILSAFE",
            action="SYSTEM_HALT",
            details=f"Critical Failure in {collaborator}. Workflow Suspended.",
            rationale="Safety Protocol Triggered",
            metadata=AuditMetadata(
                source_type="SYSTEM_GENERATED",
                process_tool=collaborator,
                process_risk="HIGH",
                context={"error": str(error), **(context or {})},
            ),
        ))

    def update_assets(self, assets: Sequence[Asset]) -> None:
        self._ensure_online()
        self.assets = list(assets)
        self.persistence.save_assets(self.assets)

    def close(self) -> None:
        self.persistence.storage.close()
