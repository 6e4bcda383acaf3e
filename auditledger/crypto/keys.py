# auditledger/crypto/keys.py
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from auditledger.core.canon import canonical_json
from auditledger.core.encoding import b64_decode, b64_encode, b64url_decode, b64url_encode
from auditledger.crypto.hashing import digest

CURVE_NAME = "P-256"
_COORD_LEN = 32  # bytes per coordinate / scalar on P-256


def _int_to_b64url(value: int) -> str:
    return b64url_encode(value.to_bytes(_COORD_LEN, "big"))


def _b64url_to_int(value: str) -> int:
    raw = b64url_decode(value)
    if len(raw) != _COORD_LEN:
        raise ValueError(f"Expected {_COORD_LEN}-byte JWK member, got {len(raw)}")
    return int.from_bytes(raw, "big")


@dataclass(frozen=True)
class SignerKeyPair:
    """
    ECDSA P-256 identity. Signatures are IEEE P1363 (r||s) in standard base64,
    keys export as JWK, so both interoperate with browser WebCrypto.
    The private half is optional: a verifier-only instance holds just the public key.
    """
    public_key: ec.EllipticCurvePublicKey
    private_key: Optional[ec.EllipticCurvePrivateKey] = None

    @classmethod
    def generate(cls) -> "SignerKeyPair":
        priv = ec.generate_private_key(ec.SECP256R1())
        return cls(public_key=priv.public_key(), private_key=priv)

    # ── JWK import / export

    @classmethod
    def from_public_jwk(cls, jwk: Dict[str, Any]) -> "SignerKeyPair":
        if not isinstance(jwk, dict):
            raise ValueError(f"JWK must be an object, got {type(jwk).__name__}")
        if jwk.get("kty") != "EC" or jwk.get("crv") != CURVE_NAME:
            raise ValueError(f"Unsupported JWK: kty={jwk.get('kty')} crv={jwk.get('crv')}")
        numbers = ec.EllipticCurvePublicNumbers(
            _b64url_to_int(jwk["x"]), _b64url_to_int(jwk["y"]), ec.SECP256R1()
        )
        return cls(public_key=numbers.public_key())

    @classmethod
    def from_jwk(cls, private_jwk: Dict[str, Any], public_jwk: Optional[Dict[str, Any]] = None) -> "SignerKeyPair":
        """Load a full keypair. If a separate public JWK is given it must match the private one."""
        if not isinstance(private_jwk, dict):
            raise ValueError(f"Private JWK must be an object, got {type(private_jwk).__name__}")
        public = cls.from_public_jwk(public_jwk or private_jwk)
        if "d" not in private_jwk:
            raise ValueError("Private JWK is missing 'd'")
        priv = ec.derive_private_key(_b64url_to_int(private_jwk["d"]), ec.SECP256R1())
        if priv.public_key().public_numbers() != public.public_key.public_numbers():
            raise ValueError("Private and public JWK do not belong together")
        return cls(public_key=priv.public_key(), private_key=priv)

    def public_jwk(self) -> Dict[str, str]:
        """Only the required members (RFC 7638 set), so the export is canonical."""
        nums = self.public_key.public_numbers()
        return {
            "kty": "EC",
            "crv": CURVE_NAME,
            "x": _int_to_b64url(nums.x),
            "y": _int_to_b64url(nums.y),
        }

    def private_jwk(self) -> Dict[str, str]:
        if self.private_key is None:
            raise ValueError("No private key available")
        jwk = self.public_jwk()
        jwk["d"] = _int_to_b64url(self.private_key.private_numbers().private_value)
        return jwk

    @property
    def can_sign(self) -> bool:
        return self.private_key is not None

    def fingerprint(self) -> str:
        """Short display id: 8 upper-cased hex chars of the public JWK digest."""
        return digest(canonical_json(self.public_jwk()))[2:10].upper()

    # ── signing

    def sign_bytes(self, data: bytes) -> bytes:
        if self.private_key is None:
            raise ValueError("Cannot sign with a verify-only key")
        der = self.private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(_COORD_LEN, "big") + s.to_bytes(_COORD_LEN, "big")

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        if len(signature) != 2 * _COORD_LEN:
            return False
        r = int.from_bytes(signature[:_COORD_LEN], "big")
        s = int.from_bytes(signature[_COORD_LEN:], "big")
        try:
            self.public_key.verify(encode_dss_signature(r, s), data, ec.ECDSA(hashes.SHA256()))
            return True
        except (InvalidSignature, ValueError):
            return False

    def sign(self, digest_str: str) -> str:
        """Sign the UTF-8 bytes of a digest string (the commitment to a payload, not the payload)."""
        return b64_encode(self.sign_bytes(digest_str.encode("utf-8")))

    def verify(self, signature: str, digest_str: str) -> bool:
        try:
            raw = b64_decode(signature)
        except ValueError:
            return False
        return self.verify_bytes(raw, digest_str.encode("utf-8"))


def sign(keypair: SignerKeyPair, digest_str: str) -> str:
    return keypair.sign(digest_str)


def verify_signature(public_jwk: Dict[str, Any], signature: str, digest_str: str) -> bool:
    """Check a signature against a bare public JWK. Malformed keys verify as False."""
    try:
        verifier = SignerKeyPair.from_public_jwk(public_jwk)
    except (KeyError, ValueError):
        return False
    return verifier.verify(signature, digest_str)
