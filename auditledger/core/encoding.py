# auditledger/core/encoding.py
import base64
import binascii


def b64url_encode(data: bytes) -> str:
    """Encode bytes to base64url (no padding, URL-safe). Used for JWK members."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode base64url string back to bytes."""
    # Restore padding
    padding = len(s) % 4
    if padding:
        s += "=" * (4 - padding)
    return base64.urlsafe_b64decode(s)


def b64_encode(data: bytes) -> str:
    """Standard base64 (with padding), the form signatures are stored in."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> bytes:
    """Strict standard base64 decode. Raises ValueError on malformed input."""
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64 data: {e}") from e
