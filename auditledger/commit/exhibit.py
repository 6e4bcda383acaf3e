# auditledger/commit/exhibit.py
"""Exhibit Z: one sealed manifest bundling the artifacts committed during a session."""

import time
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from auditledger.core.errors import CommitmentError
from auditledger.core.types import AuditMetadata, CommitmentObject, EventDraft, utc_now
from auditledger.crypto.hashing import commitment_hash, compute_hash

EXHIBIT_SCHEMA = "EXHIBIT_Z_V1"
BUNDLE_ROOT = "SESSION_BUNDLE_ROOT"


@dataclass(frozen=True)
class ExhibitArtifact:
    source: str
    hash: str
    vault_name: Optional[str] = None
    path: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"source": self.source, "hash": self.hash}
        if self.vault_name is not None:
            d["vaultName"] = self.vault_name
        if self.path is not None:
            d["path"] = self.path
        return d


def build_exhibit_manifest(artifacts: Sequence[ExhibitArtifact], timestamp: Optional[str] = None) -> dict:
    if not artifacts:
        raise CommitmentError("No committed artifacts to bundle")
    return {
        "schema": EXHIBIT_SCHEMA,
        "timestamp": timestamp or utc_now(),
        "artifactCount": len(artifacts),
        "artifacts": [a.to_dict() for a in artifacts],
    }


def seal_exhibit(
    artifacts: Sequence[ExhibitArtifact],
    timestamp: Optional[str] = None,
) -> Tuple[dict, CommitmentObject, EventDraft]:
    """
    Hash the manifest and wrap it as a CHAINED_RECORD commitment object.
    The manifest lands at a vault path named after its hash; the object itself
    stays content-addressed like every other commitment.
    """
    timestamp = timestamp or utc_now()
    manifest = build_exhibit_manifest(artifacts, timestamp)
    manifest_hash = compute_hash(manifest)

    object_id = f"EXZ-{int(time.time() * 1000)}"
    content = CommitmentObject(
        id=object_id,
        hash="",
        timestamp=timestamp,
        type="CHAINED_RECORD",
        status="IMMUTABLE",
        content_summary=f"EXHIBIT Z: {len(artifacts)} Artifacts (Crypto-Bundled)",
        authority_level="AI_RECOMMENDED",
        governance="SOLE_FIDUCIARY",
        signatures=("SYSTEM_AGENT_EXZ",),
        reference_id=BUNDLE_ROOT,
        path=f"/Vault/Exhibits/{manifest_hash}.json",
    )
    obj = replace(content, hash=commitment_hash(content))
    draft = EventDraft(
        id=f"EVT-{object_id}",
        actor="INGESTION_AGENT",
        action="EXHIBIT_Z_BUILT",
        details=f"Exhibit Z Manifest Locked: {manifest_hash[:16]}...",
        rationale="Cryptographic Bundle Finalization",
        metadata=AuditMetadata(
            source_type="SYSTEM_GENERATED",
            source_hash=manifest_hash,
            output_hash=manifest_hash,
            bfo_id=object_id,
            context={"artifact_count": len(artifacts)},
        ),
    )
    return manifest, obj, draft
