# auditledger/storage/sqlite.py
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from . import StorageBackend


class SQLiteStorage(StorageBackend):
    """SQLite key-value store for ledger, commitment, asset and identity records."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("LEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "audit-ledger.db"

        self.db_path = Path(db_path)

        # Ensure the entire parent directory tree exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        conn_str = str(self.db_path)
        self._conn = sqlite3.connect(conn_str, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key         TEXT    PRIMARY KEY,
                value       TEXT    NOT NULL,
                updated_at  TEXT    NOT NULL
            )
        """)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self.conn.execute("""
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """, (key, value, now))

    def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        cursor = self.conn.execute("SELECT key FROM kv ORDER BY key ASC")
        return [row[0] for row in cursor.fetchall()]

    def get_updated_at(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT updated_at FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
