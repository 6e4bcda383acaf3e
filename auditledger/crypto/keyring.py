# auditledger/crypto/keyring.py
import logging
from typing import Optional

from auditledger.core.errors import KeyCorruptionError
from auditledger.crypto.keys import SignerKeyPair
from auditledger.storage.persistence import Persistence

logger = logging.getLogger(__name__)


class Keyring:
    """
    Holds the single local signing identity.
    Generated once, reloaded across sessions, regenerated only on corruption or reset.
    """

    def __init__(self, persistence: Persistence):
        self.persistence = persistence
        self._keypair: Optional[SignerKeyPair] = None

    def load_or_create(self, force_new: bool = False) -> SignerKeyPair:
        if not force_new:
            try:
                restored = self._restore()
            except KeyCorruptionError as e:
                logger.warning("[ledger] Key corruption detected, regenerating identity: %s", e)
            else:
                if restored is not None:
                    logger.info("[ledger] Restored persistent identity %s", restored.fingerprint())
                    self._keypair = restored
                    return restored

        keypair = SignerKeyPair.generate()
        self.persistence.save_identity({
            "privateJwk": keypair.private_jwk(),
            "publicJwk": keypair.public_jwk(),
        })
        logger.info("[ledger] Generated new identity %s", keypair.fingerprint())
        self._keypair = keypair
        return keypair

    def _restore(self) -> Optional[SignerKeyPair]:
        record = self.persistence.load_identity()
        if record is None:
            return None
        try:
            return SignerKeyPair.from_jwk(record["privateJwk"], record.get("publicJwk"))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise KeyCorruptionError(f"Identity record cannot be imported: {e}") from e

    @property
    def keypair(self) -> SignerKeyPair:
        if self._keypair is None:
            return self.load_or_create()
        return self._keypair

    def fingerprint(self) -> str:
        return self.keypair.fingerprint()

    def clear(self) -> None:
        self.persistence.clear_identity()
        self._keypair = None
