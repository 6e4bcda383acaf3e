# tests/test_storage.py
import json
import pytest
import sqlite3
from dataclasses import replace
from pathlib import Path

from auditledger.core.errors import KeyCorruptionError, LedgerCorruptionError
from auditledger.core.types import Asset, CommitmentObject
from auditledger.crypto.hashing import commitment_hash
from auditledger.storage import MemoryStorage, Persistence, SQLiteStorage, StorageBackend, create_storage
from auditledger.storage.persistence import ASSETS_KEY, IDENTITY_KEY, LEDGER_KEY
from auditledger.verify.verifier import LedgerVerifier


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def storage(temp_db_path: Path) -> SQLiteStorage:
    s = SQLiteStorage(db_path=temp_db_path)
    yield s
    s.close()


def test_create_storage_dynamic_routing(temp_db_path: Path):
    storage = create_storage(f"sqlite://{temp_db_path}")
    assert isinstance(storage, SQLiteStorage)
    assert str(storage.db_path.resolve()) == str(temp_db_path.resolve())
    storage.close()

    assert isinstance(create_storage("memory://"), MemoryStorage)

    bare = create_storage(str(temp_db_path))
    assert isinstance(bare, SQLiteStorage)
    assert bare.db_path == temp_db_path.resolve()
    bare.close()


@pytest.mark.parametrize("uri", ["postgres://db", "sqlite://", ""])
def test_create_storage_rejects(uri):
    with pytest.raises(ValueError):
        create_storage(uri)


def test_sqlite_init_default_and_env(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("LEDGER_DB_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    default_storage = SQLiteStorage()
    assert default_storage.db_path.name == "audit-ledger.db"
    default_storage.close()

    env_path = tmp_path / "nested" / "env-test.db"
    monkeypatch.setenv("LEDGER_DB_PATH", str(env_path))
    env_storage = SQLiteStorage()
    assert env_storage.db_path == env_path.resolve()
    assert env_path.parent.is_dir()
    env_storage.close()


def test_sqlite_schema_creation(storage: SQLiteStorage):
    cursor = storage.conn.cursor()
    cursor.execute("PRAGMA table_info(kv)")
    columns = {row[1] for row in cursor.fetchall()}
    assert columns == {"key", "value", "updated_at"}


@pytest.mark.parametrize("backend", ["sqlite", "memory"])
def test_key_value_contract(backend, temp_db_path: Path):
    store: StorageBackend = SQLiteStorage(temp_db_path) if backend == "sqlite" else MemoryStorage()
    with store:
        assert store.get("missing") is None
        store.put("b", "1")
        store.put("a", "2")
        store.put("b", "3")
        assert store.get("b") == "3"
        assert store.keys() == ["a", "b"]
        store.delete("a")
        store.delete("never-there")
        assert store.keys() == ["b"]

    with pytest.raises(RuntimeError, match="closed"):
        store.get("b")


def test_sqlite_survives_reopen(temp_db_path: Path):
    with SQLiteStorage(temp_db_path) as first:
        first.put(LEDGER_KEY, "[]")
        assert first.get_updated_at(LEDGER_KEY) is not None
    with SQLiteStorage(temp_db_path) as second:
        assert second.get(LEDGER_KEY) == "[]"


# ── persistence

def test_ledger_roundtrip(make_chain, persistence: Persistence):
    chain = make_chain(3)
    assert persistence.save_ledger(chain)
    assert persistence.load_ledger() == chain


def test_ledger_stored_newest_first_with_wire_keys(make_chain, persistence: Persistence):
    chain = make_chain(2)
    persistence.save_ledger(chain)
    stored = json.loads(persistence.storage.get(LEDGER_KEY))
    assert stored[0]["hash"] == chain[0].hash
    assert stored[-1]["previousHash"] == "GENESIS"
    assert stored[0]["metadata"]["sourceType"] == "USER_INPUT"


def test_load_ledger_empty_store(persistence: Persistence):
    assert persistence.load_ledger() is None


def test_load_ledger_garbage_fails_closed(persistence: Persistence):
    persistence.storage.put(LEDGER_KEY, "<<<")
    with pytest.raises(LedgerCorruptionError, match="cannot be decoded"):
        persistence.load_ledger()


def test_save_failure_is_reported(persistence: Persistence, caplog):
    persistence.storage.close()
    with caplog.at_level("ERROR", logger="auditledger.storage.persistence"):
        assert persistence.save_assets([]) is False
    assert "Failed to save assets" in caplog.text


def test_commitments_roundtrip(persistence: Persistence):
    content = CommitmentObject(
        id="BFO-1-0001", hash="", timestamp="2026-01-31T14:00:00.000Z", type="MEMO",
        status="IMMUTABLE", content_summary="note", authority_level="HUMAN_SOLE",
        governance="SOLE_FIDUCIARY", signatures=("ME",),
    )
    obj = replace(content, hash=commitment_hash(content))
    persistence.save_commitments([obj])
    assert persistence.load_commitments() == [obj]


def test_commitments_default_to_empty(persistence: Persistence):
    assert persistence.load_commitments() == []


def test_assets_roundtrip_and_unreadable(persistence: Persistence):
    assert persistence.load_assets() is None
    assets = [Asset("1", "Liquid Reserves", 450000, "ACTIVE", "LIQUID")]
    persistence.save_assets(assets)
    assert persistence.load_assets() == assets

    persistence.storage.put(ASSETS_KEY, "not json")
    assert persistence.load_assets() is None


@pytest.mark.parametrize("raw", ["not json", "[1, 2]"])
def test_identity_corruption(raw, persistence: Persistence):
    persistence.storage.put(IDENTITY_KEY, raw)
    with pytest.raises(KeyCorruptionError):
        persistence.load_identity()


def test_clear_all_keeps_identity(make_chain, persistence: Persistence):
    persistence.save_ledger(make_chain(1))
    persistence.save_assets([])
    persistence.save_identity({"publicJwk": {}})
    persistence.clear_all()

    assert persistence.load_ledger() is None
    assert persistence.load_assets() is None
    assert persistence.load_identity() == {"publicJwk": {}}

    persistence.clear_identity()
    assert persistence.load_identity() is None


def test_tamper_via_raw_sql_detected(make_chain, temp_db_path: Path):
    persistence = Persistence(SQLiteStorage(temp_db_path))
    persistence.save_ledger(make_chain(3))
    persistence.storage.close()

    conn = sqlite3.connect(temp_db_path)
    raw = conn.execute("SELECT value FROM kv WHERE key = ?", (LEDGER_KEY,)).fetchone()[0]
    records = json.loads(raw)
    records[-2]["details"] = "rewritten history"
    conn.execute("UPDATE kv SET value = ? WHERE key = ?", (json.dumps(records), LEDGER_KEY))
    conn.commit()
    conn.close()

    reopened = Persistence(SQLiteStorage(temp_db_path))
    result = LedgerVerifier().verify_from_storage(reopened)
    assert not result.is_valid
    assert result.error_index == 1
    assert result.category == "hash_mismatch"
    reopened.storage.close()


def test_ledger_with_rich_context_values_is_saved(make_event, persistence: Persistence):
    from datetime import datetime, timezone
    from auditledger.core.types import AuditMetadata

    event = make_event("GENESIS", 0)
    event = replace(event, metadata=AuditMetadata(context={"at": datetime(2026, 1, 31, tzinfo=timezone.utc)}))
    assert persistence.save_ledger([event])
    assert persistence.load_ledger()[0].metadata.context == {"at": "2026-01-31T00:00:00.000Z"}


def test_unserializable_value_is_reported_not_raised(persistence: Persistence):
    assert persistence.save_identity({"bad": float("inf")}) is False
    assert persistence.load_identity() is None
