# auditledger/chain/queue.py
import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional, Union

from auditledger.core.errors import CryptoPipelineError, LedgerError, LedgerHaltedError
from auditledger.core.types import GENESIS, AuditEvent, EventDraft, event_payload, utc_now
from auditledger.crypto.hashing import compute_hash, is_digest
from auditledger.chain.ledger import AuditLedger, create_genesis

logger = logging.getLogger(__name__)

HASHING_PIPELINE_FAILURE = "HASHING_PIPELINE_FAILURE"

Hasher = Callable[[dict], Union[str, Awaitable[str]]]


class AppendQueue:
    """
    Serializes concurrently submitted drafts into one chain order.

    Any number of producers may call submit(); a single drain task consumes
    drafts strictly one at a time, because each hash depends on the head left
    by the previous one. A hashing failure halts the whole ledger.
    """

    def __init__(
        self,
        ledger: AuditLedger,
        hasher: Hasher = compute_hash,
        clock: Callable[[], str] = utc_now,
    ):
        self.ledger = ledger
        self._hasher = hasher
        self._clock = clock
        self._pending: Deque[EventDraft] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._on_accept: List[Callable[[AuditEvent], Any]] = []
        self._on_halt: List[Callable[[str], Any]] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def on_accept(self, callback: Callable[[AuditEvent], Any]) -> None:
        self._on_accept.append(callback)

    def on_halt(self, callback: Callable[[str], Any]) -> None:
        self._on_halt.append(callback)

    def bootstrap(self) -> Optional[AuditEvent]:
        """Seed an empty chain with the genesis block. No-op if a head already exists."""
        if self.ledger.head is not None:
            return None
        genesis = create_genesis(self._clock())
        self._publish(genesis)
        return genesis

    def submit(self, draft: EventDraft) -> None:
        """
        Fire-and-forget append request. Must be called from inside a running event loop.
        The caller never gets the finished hash back; it shows up in the ledger once drained.
        """
        if self.ledger.is_halted:
            raise LedgerHaltedError(self.ledger.halt_reason)
        loop = asyncio.get_running_loop()
        self._pending.append(draft)
        if not self._draining:
            self._draining = True
            self._drain_task = loop.create_task(self._drain())

    async def join(self) -> None:
        """Wait until every submitted draft has been accepted (or dropped by a halt)."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _hash(self, payload: dict) -> str:
        if inspect.iscoroutinefunction(self._hasher):
            result = await self._hasher(payload)
        else:
            result = await asyncio.to_thread(self._hasher, payload)
        if not is_digest(result):
            raise CryptoPipelineError(f"Hasher returned a malformed digest: {result!r}")
        return result

    async def _drain(self) -> None:
        try:
            while self._pending:
                if self.ledger.is_halted:
                    self._drop_pending()
                    return

                draft = self._pending.popleft()
                previous_hash = self.ledger.head or GENESIS
                timestamp = self._clock()
                payload = event_payload(
                    previous_hash, timestamp, draft.actor, draft.action, draft.details,
                    draft.rationale, draft.metadata, draft.signature,
                )

                try:
                    new_hash = await self._hash(payload)
                except Exception as e:
                    logger.error("[ledger] Crypto error while hashing %s: %s", draft.id, e)
                    self._fail(HASHING_PIPELINE_FAILURE)
                    return

                event = AuditEvent(
                    id=draft.id,
                    timestamp=timestamp,
                    actor=draft.actor,
                    action=draft.action,
                    details=draft.details,
                    hash=new_hash,
                    previous_hash=previous_hash,
                    metadata=draft.metadata,
                    rationale=draft.rationale or "",
                    signature=draft.signature or "",
                )
                try:
                    self._publish(event)
                except LedgerError as e:
                    self._fail(str(e))
                    return
        finally:
            self._draining = False

    def _publish(self, event: AuditEvent) -> None:
        self.ledger.accept(event)
        for callback in self._on_accept:
            try:
                callback(event)
            except Exception as e:
                logger.error("[ledger] on_accept callback failed for %s: %s", event.id, e)

    def _drop_pending(self) -> None:
        if self._pending:
            logger.error("[ledger] Dropping %d queued event(s): ledger halted", len(self._pending))
            self._pending.clear()

    def _fail(self, reason: str) -> None:
        self.ledger.halt(reason)
        self._drop_pending()
        for callback in self._on_halt:
            try:
                callback(self.ledger.halt_reason)
            except Exception as e:
                logger.error("[ledger] on_halt callback failed: %s", e)
