# tests/test_core.py
import math
import pytest
from datetime import datetime, timezone, timedelta

from auditledger.core.canon import ABSENT, canonical_json, canonicalize, wire_timestamp
from auditledger.core.encoding import b64_decode, b64_encode, b64url_decode, b64url_encode
from auditledger.core.types import (
    GENESIS,
    Asset,
    AuditEvent,
    AuditMetadata,
    CommitmentObject,
    EventDraft,
    event_payload,
    utc_now,
)


def test_canonical_key_order_independent():
    assert canonicalize({"a": 1, "b": 2}) == canonicalize({"b": 2, "a": 1})
    assert canonicalize({"b": 2, "a": 1}) == '{"a":1,"b":2}'


def test_canonical_omits_absent_fields():
    assert canonicalize({"a": 1, "b": ABSENT}) == canonicalize({"a": 1})


def test_canonical_none_is_present_null():
    assert canonicalize({"a": 1, "b": None}) == '{"a":1,"b":null}'
    assert canonicalize({"a": 1, "b": None}) != canonicalize({"a": 1})


def test_canonical_edge_cases():
    assert canonicalize({}) == "{}"
    assert canonicalize([]) == "[]"
    assert canonicalize(None) == "null"
    assert canonicalize(ABSENT) == "null"
    assert canonicalize([1, ABSENT, "x"]) == '[1,null,"x"]'


def test_canonical_nested_sorting_keeps_array_order():
    messy = {
        "z": 1,
        "a": "hello",
        "nested": {"b": 2, "a": [3, 1, 2]},
    }
    assert canonicalize(messy) == '{"a":"hello","nested":{"a":[3,1,2],"b":2},"z":1}'


def test_canonical_primitives_match_json():
    assert canonicalize("quote\"d") == '"quote\\"d"'
    assert canonicalize(True) == "true"
    assert canonicalize(42) == "42"
    assert canonical_json({"k": "v"}) == b'{"k":"v"}'


def test_canonical_datetime_uses_wire_form():
    when = datetime(2026, 1, 31, 14, 0, 5, 123456, tzinfo=timezone.utc)
    assert canonicalize({"t": when}) == '{"t":"2026-01-31T14:00:05.123Z"}'


def test_wire_timestamp_normalizes_to_utc():
    plus_two = timezone(timedelta(hours=2))
    when = datetime(2026, 1, 31, 16, 0, 0, tzinfo=plus_two)
    assert wire_timestamp(when) == "2026-01-31T14:00:00.000Z"
    assert utc_now().endswith("Z")


def test_canonical_rejects_non_json_values():
    with pytest.raises(ValueError):
        canonicalize({"x": math.inf})
    with pytest.raises(TypeError):
        canonicalize({"x": object()})
    with pytest.raises(TypeError):
        canonicalize({1: "int key"})


def test_canonical_deterministic_across_calls():
    value = {"metadata": {"context": {"z": [1, {"b": 1, "a": 2}]}}, "id": "EVT-1"}
    assert canonicalize(value) == canonicalize(dict(reversed(list(value.items()))))


def test_base64url_roundtrip():
    original = b'{"hello":"world"}'
    encoded = b64url_encode(original)
    assert b64url_decode(encoded) == original
    assert "=" not in encoded  # no padding


def test_base64_strict_decode():
    assert b64_decode(b64_encode(b"\x00\xff")) == b"\x00\xff"
    with pytest.raises(ValueError):
        b64_decode("not base64!!")


def test_metadata_omits_unset_fields():
    md = AuditMetadata(source_type="USER_INPUT", context={"ref": None})
    assert md.to_dict() == {"schema": "1.0.0", "sourceType": "USER_INPUT", "context": {"ref": None}}
    assert AuditMetadata.from_dict(md.to_dict()) == md


def test_metadata_keeps_foreign_wire_members():
    wire = {"sourceType": "USER_INPUT", "targetPath": None, "deviceId": "tablet-7", "context": {"k": 1}}
    md = AuditMetadata.from_dict(wire)
    assert md.source_type == "USER_INPUT"
    assert md.schema is None
    assert md.to_dict() == wire
    assert canonicalize(md) == canonicalize(wire)


def test_payload_defaults_rationale_and_signature_to_empty_string():
    payload = event_payload(GENESIS, "t", "SYSTEM", "HASHING", "d", None, AuditMetadata(), None)
    assert payload["rationale"] == ""
    assert payload["signature"] == ""


def test_payload_without_metadata_omits_key():
    payload = event_payload(GENESIS, "t", "SYSTEM", "HASHING", "d", "", None, "")
    assert "metadata" not in canonicalize(payload)


def test_event_immutable_and_roundtrips():
    event = AuditEvent(
        id="EVT-1", timestamp="2026-01-31T14:00:00.000Z", actor="USER", action="HASHING",
        details="test", hash="0x" + "0" * 64, previous_hash=GENESIS,
        metadata=AuditMetadata(process_tool="SHA-256"),
    )
    with pytest.raises(AttributeError):
        event.details = "changed"
    assert AuditEvent.from_dict(event.to_dict()) == event


def test_event_from_dict_normalizes_missing_optional_fields():
    data = {
        "id": "EVT-1", "timestamp": "t", "actor": "USER", "action": "HASHING",
        "details": "x", "hash": "h", "previousHash": GENESIS, "metadata": {"schema": "1.0.0"},
    }
    event = AuditEvent.from_dict(data)
    assert event.rationale == ""
    assert event.signature == ""


def test_draft_rejects_unknown_tags():
    with pytest.raises(ValueError, match="actor"):
        EventDraft(id="x", actor="ROBOT", action="HASHING", details="d")
    with pytest.raises(ValueError, match="action"):
        EventDraft(id="x", actor="USER", action="DANCE", details="d")


def test_commitment_content_excludes_hash_and_absent_links():
    obj = CommitmentObject(
        id="BFO-1", hash="0xabc", timestamp="t", type="MEMO", status="IMMUTABLE",
        content_summary="s", authority_level="HUMAN_SOLE", governance="SOLE_FIDUCIARY",
        signatures=("AB",),
    )
    content = canonicalize(obj.content())
    assert "hash" not in obj.content()
    assert "referenceId" not in content
    assert "path" not in content
    assert CommitmentObject.from_dict(obj.to_dict()) == obj


def test_asset_roundtrip():
    asset = Asset("1", "Liquid Reserves", 450000, "ACTIVE", "LIQUID")
    assert Asset.from_dict(asset.to_dict()) == asset
