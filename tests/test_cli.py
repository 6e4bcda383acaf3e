# tests/test_cli.py
import json
import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from auditledger.cli.main import app
from auditledger.storage.persistence import LEDGER_KEY

runner = CliRunner()


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    return tmp_path / "test-cli.db"


@pytest.fixture
def initialized_db(temp_db: Path) -> Path:
    result = runner.invoke(app, ["init", "--db", str(temp_db)])
    assert result.exit_code == 0, result.stdout
    return temp_db


def invoke(*args: str):
    return runner.invoke(app, list(args))


def test_status_no_db(temp_db: Path):
    result = invoke("status", "--db", str(temp_db))
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()
    assert "to get started" in result.stdout.lower()


def test_db_from_env(temp_db: Path, monkeypatch):
    monkeypatch.setenv("LEDGER_DB_PATH", str(temp_db))
    assert invoke("init").exit_code == 0
    assert temp_db.exists()
    assert invoke("verify").exit_code == 0


def test_init_is_idempotent(initialized_db: Path):
    first_head = invoke("head", "--db", str(initialized_db)).stdout.strip()
    result = invoke("init", "--db", str(initialized_db))
    assert result.exit_code == 0
    assert "Ledger ready" in result.stdout
    assert invoke("head", "--db", str(initialized_db)).stdout.strip() == first_head


def test_head_prints_digest(initialized_db: Path):
    result = invoke("head", "--db", str(initialized_db))
    assert result.exit_code == 0
    assert result.stdout.strip().startswith("0x")
    assert len(result.stdout.strip()) == 66


def test_status_table(initialized_db: Path):
    result = invoke("status", "--db", str(initialized_db))
    assert result.exit_code == 0
    assert "ONLINE" in result.stdout
    assert "SECURE" in result.stdout


def test_append_then_verify(initialized_db: Path):
    result = invoke("append", "Quarterly review", "--action", "ANALYSIS", "--db", str(initialized_db))
    assert result.exit_code == 0, result.stdout
    assert "Appended" in result.stdout

    verified = invoke("verify", "--db", str(initialized_db))
    assert verified.exit_code == 0
    assert "Ledger is valid" in verified.stdout
    assert "2 blocks verified" in verified.stdout

    events = invoke("events", "--db", str(initialized_db))
    assert "Quarterly review" in events.stdout
    assert "GENESIS BLOCK" in events.stdout


@pytest.mark.parametrize("flag, value", [("--actor", "ROBOT"), ("--action", "DANCE")])
def test_append_rejects_unknown_tags(initialized_db: Path, flag, value):
    result = invoke("append", "x", flag, value, "--db", str(initialized_db))
    assert result.exit_code == 2
    assert "Unknown" in result.stdout


def test_verify_detects_tamper(initialized_db: Path):
    invoke("append", "first", "--db", str(initialized_db))
    invoke("append", "second", "--db", str(initialized_db))

    conn = sqlite3.connect(initialized_db)
    raw = conn.execute("SELECT value FROM kv WHERE key = ?", (LEDGER_KEY,)).fetchone()[0]
    conn.execute("UPDATE kv SET value = ? WHERE key = ?", (raw.replace('"first"', '"edited"'), LEDGER_KEY))
    conn.commit()
    conn.close()

    result = invoke("verify", "--db", str(initialized_db))
    assert result.exit_code == 1
    assert "Verification failed" in result.stdout
    assert "hash_mismatch" in result.stdout

    status = invoke("status", "--db", str(initialized_db))
    assert status.exit_code == 1
    assert "LEDGER HALTED" in status.stdout

    wiped = invoke("wipe", "--yes", "--db", str(initialized_db))
    assert wiped.exit_code == 0
    assert "wiped" in wiped.stdout
    assert invoke("verify", "--db", str(initialized_db)).exit_code == 0


def test_wipe_requires_confirmation(initialized_db: Path):
    result = invoke("wipe", "--db", str(initialized_db))
    assert result.exit_code == 1
    assert "Refusing" in result.stdout


def test_commit_and_list(initialized_db: Path):
    assert "No commitment objects" in invoke("commitments", "--db", str(initialized_db)).stdout

    result = invoke(
        "commit", "Acquire Target Alpha",
        "-s", "ALICE", "-s", "BOB",
        "--type", "CONTRACT", "--governance", "JOINT_COUNCIL", "--authority", "JOINT_CONSENSUS",
        "--db", str(initialized_db),
    )
    assert result.exit_code == 0, result.stdout
    assert "Committed BFO-" in result.stdout

    listing = invoke("commitments", "--db", str(initialized_db))
    assert "CONTRACT" in listing.stdout
    assert invoke("verify", "--db", str(initialized_db)).exit_code == 0


def test_commit_without_quorum_is_rejected(initialized_db: Path):
    result = invoke(
        "commit", "Acquire Target Alpha", "-s", "ALICE",
        "--governance", "JOINT_COUNCIL", "--db", str(initialized_db),
    )
    assert result.exit_code == 1
    assert "rejected" in result.stdout
    assert "No commitment objects" in invoke("commitments", "--db", str(initialized_db)).stdout


def test_anchor(initialized_db: Path):
    head = invoke("head", "--db", str(initialized_db)).stdout.strip()
    result = invoke("anchor", "--db", str(initialized_db))
    assert result.exit_code == 0
    assert "Anchored root" in result.stdout
    assert invoke("head", "--db", str(initialized_db)).stdout.strip() != head


def test_identity_is_persistent(initialized_db: Path):
    first = invoke("identity", "--db", str(initialized_db))
    second = invoke("identity", "--db", str(initialized_db))
    assert first.exit_code == 0
    assert "Fingerprint: KEY-" in first.stdout
    assert first.stdout == second.stdout

    reset = invoke("identity", "--reset", "--db", str(initialized_db))
    assert reset.stdout != first.stdout


def test_export_jsonl(initialized_db: Path, tmp_path: Path):
    invoke("append", "exported", "--db", str(initialized_db))
    out = tmp_path / "ledger.jsonl"

    result = invoke("export", "--db", str(initialized_db), "--output", str(out))
    assert result.exit_code == 0
    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    records = [json.loads(line) for line in lines]
    assert records[0]["previousHash"] == "GENESIS"
    assert records[1]["previousHash"] == records[0]["hash"]
    assert records[1]["details"] == "exported"
