# auditledger/core/canon.py
import math
from dataclasses import is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")


class _Absent:
    """Marker for a field that has no value at all (as opposed to a present null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


def wire_timestamp(value: datetime) -> str:
    """ISO 8601 UTC with millis and a trailing Z, e.g. 2026-01-31T14:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _prepare(value: Any) -> Any:
    # Reduce to plain JSON types. ABSENT record members are skipped below.
    if value is ABSENT or value is None:
        return None
    if isinstance(value, Enum):
        return _prepare(value.value)
    if isinstance(value, bool) or isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Cannot canonicalize non-finite number: {value!r}")
        return value
    if isinstance(value, datetime):
        return wire_timestamp(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if v is ABSENT:
                continue
            if not isinstance(k, str):
                raise TypeError(f"Record keys must be strings, got {type(k).__name__}")
            out[k] = _prepare(v)
        return out
    if isinstance(value, (list, tuple)):
        return [_prepare(item) for item in value]
    if is_dataclass(value) and hasattr(value, "to_dict"):
        return _prepare(value.to_dict())
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def json_ready(value: Any) -> Any:
    """Plain JSON types, reduced exactly as canonical_json reduces them. Used for storage."""
    return _prepare(value)


def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).
    Keys holding ABSENT are omitted; ABSENT anywhere else becomes null.
    Returns bytes ready for hashing or signing.
    """
    return jcs.canonicalize(_prepare(obj))


def canonicalize(obj: Any) -> str:
    """Same as above, but returns string. This is the exact hash input."""
    return canonical_json(obj).decode("utf-8")
