# auditledger/core/types.py
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple, Union, get_args

from auditledger.core.canon import ABSENT, wire_timestamp

GENESIS = "GENESIS"
METADATA_SCHEMA = "1.0.0"

# Any JSON value; context maps may nest arbitrarily.
JSONValue = Union[None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]]

Actor = Literal[
    "USER", "AI_CO_FIDUCIARY", "SYSTEM", "COUNCIL_MAJORITY", "SYSTEM_FAILSAFE", "INGESTION_AGENT",
]
Action = Literal[
    "INTAKE", "ANALYSIS", "APPROVAL", "OVERRIDE", "REJECTION", "HASHING", "SIGNATURE",
    "RATIFICATION", "AUTO_COMMIT", "SYSTEM_HALT", "MANUAL_INTERVENTION", "CHAT_INTERACTION",
    "DRIVE_IMPORT", "INTAKE_RECEIVED", "OCR_COMPLETED", "CLASSIFICATION_PROPOSED",
    "REFILE_COMPLETED", "EXHIBIT_Z_BUILT", "EXTERNAL_ANCHOR_PUBLISHED",
]
AuthorityLevel = Literal["HUMAN_SOLE", "AI_RECOMMENDED", "JOINT_CONSENSUS", "OVERRIDE"]
GovernanceMode = Literal["SOLE_FIDUCIARY", "JOINT_COUNCIL"]
SourceType = Literal["USER_UPLOAD", "GOOGLE_DRIVE", "SYSTEM_GENERATED", "USER_INPUT", "AI_GENERATED"]
ProcessRisk = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
AssetStatus = Literal["ACTIVE", "ACQUISITION_TARGET", "LIQUIDATED"]
AssetType = Literal["ENTITY", "REAL_ESTATE", "IP", "LIQUID"]

ACTORS: Tuple[str, ...] = get_args(Actor)
ACTIONS: Tuple[str, ...] = get_args(Action)
AUTHORITY_LEVELS: Tuple[str, ...] = get_args(AuthorityLevel)
GOVERNANCE_MODES: Tuple[str, ...] = get_args(GovernanceMode)


def utc_now() -> str:
    return wire_timestamp(datetime.now(timezone.utc))


# python attribute -> wire key (the wire keys are part of the hashed payload)
_METADATA_WIRE = {
    "schema": "schema",
    "source_type": "sourceType",
    "source_identity": "sourceIdentity",
    "source_hash": "sourceHash",
    "process_tool": "processTool",
    "process_risk": "processRisk",
    "governance_mode": "governanceMode",
    "authority_level": "authorityLevel",
    "target_path": "targetPath",
    "output_hash": "outputHash",
    "bfo_id": "bfoId",
    "context": "context",
}
_WIRE_KEYS = frozenset(_METADATA_WIRE.values())


@dataclass(frozen=True)
class AuditMetadata:
    """Versioned provenance record attached to every event. Part of the hashed payload."""
    schema: str = METADATA_SCHEMA
    source_type: Optional[SourceType] = None
    source_identity: Optional[str] = None   # filename, message id, asset name
    source_hash: Optional[str] = None       # digest of the input data
    process_tool: Optional[str] = None      # e.g. "SHA-256", "ECDSA"
    process_risk: Optional[ProcessRisk] = None
    governance_mode: Optional[GovernanceMode] = None
    authority_level: Optional[AuthorityLevel] = None
    target_path: Optional[str] = None
    output_hash: Optional[str] = None
    bfo_id: Optional[str] = None            # linked commitment object id
    context: Optional[Dict[str, JSONValue]] = None
    # wire members this version does not model, plus explicit nulls, kept as loaded
    extras: Dict[str, JSONValue] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict:
        """Wire form. Unset optional fields are left out entirely unless they were loaded as null."""
        d = {}
        for attr, key in _METADATA_WIRE.items():
            value = getattr(self, attr)
            if value is not None:
                d[key] = value
        for key, value in self.extras.items():
            if key not in d and (value is None or key not in _WIRE_KEYS):
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditMetadata":
        # a loaded record reproduces its wire form exactly, so no defaults are filled in
        kwargs = {attr: data.get(key) for attr, key in _METADATA_WIRE.items()}
        extras = {k: v for k, v in data.items() if k not in _WIRE_KEYS or v is None}
        return cls(**kwargs, extras=extras)


def event_payload(
    previous_hash: str,
    timestamp: str,
    actor: str,
    action: str,
    details: str,
    rationale: Optional[str],
    metadata: Optional[AuditMetadata],
    signature: Optional[str],
) -> dict:
    """The exact record that is canonicalized and digested into an event's hash."""
    return {
        "previousHash": previous_hash,
        "timestamp": timestamp,
        "actor": actor,
        "action": action,
        "details": details,
        "rationale": rationale or "",
        "metadata": metadata.to_dict() if metadata is not None else ABSENT,
        "signature": signature or "",
    }


@dataclass(frozen=True)
class EventDraft:
    """Caller-supplied partial event. Timestamp, hash and linkage are assigned on acceptance."""
    id: str
    actor: Actor
    action: Action
    details: str
    rationale: str = ""
    metadata: AuditMetadata = field(default_factory=AuditMetadata)
    signature: str = ""             # base64 signature, only for binding/ratifying actors

    def __post_init__(self):
        if self.actor not in ACTORS:
            raise ValueError(f"Unknown actor: {self.actor}")
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown action: {self.action}")


@dataclass(frozen=True)
class AuditEvent:
    """Single accepted entry in the hash chain. Immutable once appended."""
    id: str
    timestamp: str                  # ISO 8601 UTC with millis, stamped by the append queue
    actor: str
    action: str
    details: str
    hash: str                       # digest of payload(); the entry's identity
    previous_hash: str              # hash of the preceding entry, or GENESIS
    metadata: Optional[AuditMetadata] = None
    rationale: str = ""
    signature: str = ""

    def payload(self) -> dict:
        return event_payload(
            self.previous_hash, self.timestamp, self.actor, self.action,
            self.details, self.rationale, self.metadata, self.signature,
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "action": self.action,
            "details": self.details,
            "hash": self.hash,
            "previousHash": self.previous_hash,
            "rationale": self.rationale,
            "signature": self.signature,
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        metadata = data.get("metadata")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            actor=data["actor"],
            action=data["action"],
            details=data["details"],
            hash=data["hash"],
            previous_hash=data["previousHash"],
            metadata=AuditMetadata.from_dict(metadata) if metadata is not None else None,
            rationale=data.get("rationale") or "",
            signature=data.get("signature") or "",
        )


CommitmentType = Literal[
    "CONTRACT", "DEED", "AFFIDAVIT", "MEMO", "AMENDMENT", "DISPUTE", "CHAINED_RECORD", "DIGITAL_ASSET",
]
CommitmentStatus = Literal["IMMUTABLE", "PENDING", "VERIFIED", "REJECTED"]
COMMITMENT_TYPES: Tuple[str, ...] = get_args(CommitmentType)


@dataclass(frozen=True)
class CommitmentObject:
    """Signed, content-addressed record of a finalized decision."""
    id: str
    hash: str                       # digest of content(); the object's canonical identity
    timestamp: str
    type: CommitmentType
    status: CommitmentStatus
    content_summary: str
    authority_level: AuthorityLevel
    governance: GovernanceMode
    signatures: Tuple[str, ...] = ()
    reference_id: Optional[str] = None  # amends / disputes / chains to this object
    path: Optional[str] = None          # virtual vault path

    def content(self) -> dict:
        """Everything except the hash, as it was digested at creation."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "status": self.status,
            "contentSummary": self.content_summary,
            "authorityLevel": self.authority_level,
            "governance": self.governance,
            "signatures": list(self.signatures),
            "referenceId": self.reference_id if self.reference_id is not None else ABSENT,
            "path": self.path if self.path is not None else ABSENT,
        }

    def to_dict(self) -> dict:
        d = {k: v for k, v in self.content().items() if v is not ABSENT}
        d["hash"] = self.hash
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommitmentObject":
        return cls(
            id=data["id"],
            hash=data["hash"],
            timestamp=data["timestamp"],
            type=data["type"],
            status=data["status"],
            content_summary=data.get("contentSummary", ""),
            authority_level=data["authorityLevel"],
            governance=data["governance"],
            signatures=tuple(data.get("signatures") or ()),
            reference_id=data.get("referenceId"),
            path=data.get("path"),
        )


@dataclass(frozen=True)
class Asset:
    """Simple valuation record. Persisted next to the ledger, not chained."""
    id: str
    name: str
    valuation: float
    status: AssetStatus
    type: AssetType

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            id=data["id"],
            name=data["name"],
            valuation=data["valuation"],
            status=data["status"],
            type=data["type"],
        )
