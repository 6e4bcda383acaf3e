# tests/conftest.py
from typing import List

import pytest

from auditledger.chain.ledger import create_genesis
from auditledger.core.types import AuditEvent, AuditMetadata, event_payload
from auditledger.crypto.hashing import compute_hash
from auditledger.storage import MemoryStorage, Persistence


def seal(previous_hash: str, n: int, details: str = None, actor: str = "USER",
         action: str = "HASHING", signature: str = "") -> AuditEvent:
    """Build a correctly hashed event on top of previous_hash (no queue involved)."""
    timestamp = f"2026-01-31T14:00:{n:02d}.000Z"
    details = details if details is not None else f"Event #{n}"
    metadata = AuditMetadata(source_type="USER_INPUT", context={"n": n, "tags": ["a", "b"]})
    payload = event_payload(previous_hash, timestamp, actor, action, details, f"why {n}", metadata, signature)
    return AuditEvent(
        id=f"EVT-{n:04d}",
        timestamp=timestamp,
        actor=actor,
        action=action,
        details=details,
        hash=compute_hash(payload),
        previous_hash=previous_hash,
        metadata=metadata,
        rationale=f"why {n}",
        signature=signature,
    )


def build_chain(n_events: int) -> List[AuditEvent]:
    """Valid chain of genesis + n_events, returned newest-first like the ledger stores it."""
    chain = [create_genesis("2026-01-31T14:00:00.000Z")]
    for i in range(1, n_events + 1):
        chain.append(seal(chain[-1].hash, i))
    return list(reversed(chain))


@pytest.fixture
def persistence() -> Persistence:
    return Persistence(MemoryStorage())


@pytest.fixture
def make_chain():
    return build_chain


@pytest.fixture
def make_event():
    return seal
