# examples/governance_demo.py
# Run with: python examples/governance_demo.py
#
# In-memory walk-through: genesis, concurrent submissions, a council commit,
# an anchor, verification, and tamper detection.

import asyncio
from dataclasses import replace

from auditledger import AuditService, AuditMetadata, EventDraft, verify_ledger
from auditledger.config import LedgerConfig
from auditledger.storage import MemoryStorage, Persistence


async def main():
    service = AuditService(Persistence(MemoryStorage()), config=LedgerConfig())
    service.boot()
    print(f"Identity: KEY-{service.get_fingerprint()}")
    print(f"Genesis:  {service.get_chain_head()}")

    # Many producers, one chain order
    print("\n[Submitting events...]")
    for i in range(5):
        service.submit_event(EventDraft(
            id=f"EVT-DEMO-{i}",
            actor="INGESTION_AGENT",
            action="INTAKE_RECEIVED",
            details=f"Document #{i} received",
            metadata=AuditMetadata(source_type="USER_UPLOAD", source_identity=f"doc-{i}.pdf"),
        ))

    # Council commit: 2 of 3 signer marks
    finalized = service.commit(
        commitment_type="CONTRACT",
        summary="Acquire Target Alpha under agreed terms",
        authority_level="JOINT_CONSENSUS",
        governance="JOINT_COUNCIL",
        signatures=["CH", "MA"],
    )
    print(f"Committed {finalized.object.id} -> {finalized.object.hash[:18]}...")

    root = service.anchor("DEMO_PUBLIC_RECORD")
    result = await service.flush()

    # Show chain
    print("\n[Audit chain, oldest first]")
    for i, event in enumerate(service.ledger.oldest_first()):
        print(f"  [{i}] {event.action:26} | {event.previous_hash[:12]}... | {event.details[:40]}")

    print("\n[Verification]")
    print(f"  Valid: {result.is_valid}  ({result.message})")
    print(f"  Anchored root: {root[:18]}...")

    print("\n[Tamper detection]")
    tampered = service.get_chain()
    tampered[-1] = replace(tampered[-1], details="GENESIS BLOCK (edited)")
    tampered_result = verify_ledger(tampered)
    print(f"  Tampering detected: {not tampered_result.is_valid}")
    print(f"  {tampered_result.message}")


if __name__ == "__main__":
    asyncio.run(main())
