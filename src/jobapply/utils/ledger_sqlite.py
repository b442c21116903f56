"""
SQLite ledger backend.

Same contract as the JSON ledger, stored in a single `ledger` table. Uses WAL
with synchronous=FULL so each committed status survives a crash of the run.
"""
from __future__ import annotations

import os
import sqlite3
from datetime import datetime
from pathlib import Path
from sqlite3 import Connection
from typing import Dict, Optional

from robocorp import log

from .models import ApplyStatus, LedgerEntry

SCHEMA_VERSION = 1


def get_db_path() -> str:
    """Get path to SQLite ledger file."""
    db_path = os.getenv("SQLITE_PATH")
    if db_path:
        return db_path
    return str(Path.cwd() / "applied.sqlite")


class SqliteLedger:
    """URL -> status map persisted in SQLite."""

    backend = "sqlite"

    def __init__(self, path: Optional[str] = None):
        self.path = path or get_db_path()
        self._connection: Optional[Connection] = None

    def get_connection(self) -> Connection:
        """Open the connection lazily and keep it for the lifetime of the ledger."""
        if self._connection is None:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = FULL")
            conn.execute("PRAGMA temp_store = MEMORY")
            _ensure_schema(conn)
            self._connection = conn
            log.info(f"[SQLite] Connected to: {self.path}")
        return self._connection

    def has(self, url: str) -> bool:
        row = self.get_connection().execute("SELECT 1 FROM ledger WHERE url = ?", [url]).fetchone()
        return row is not None

    def get(self, url: str) -> Optional[LedgerEntry]:
        row = self.get_connection().execute(
            "SELECT url, timestamp, status, detail FROM ledger WHERE url = ?", [url]
        ).fetchone()
        if row is None:
            return None
        return LedgerEntry.from_record(row["url"], dict(row))

    def set(
        self,
        url: str,
        status: ApplyStatus,
        detail: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            url=url,
            status=ApplyStatus(status),
            detail=detail,
            timestamp=timestamp or datetime.now().isoformat(),
        )
        conn = self.get_connection()
        conn.execute(
            """
            INSERT INTO ledger (url, timestamp, status, detail) VALUES (?, ?, ?, ?)
            ON CONFLICT(url) DO UPDATE SET
                timestamp = excluded.timestamp,
                status = excluded.status,
                detail = excluded.detail
            """,
            [entry.url, entry.timestamp, entry.status.value, entry.detail],
        )
        conn.commit()
        log.info(f"[Ledger] {entry.status.value}: {url}")
        return entry

    def load_all(self) -> Dict[str, LedgerEntry]:
        rows = self.get_connection().execute(
            "SELECT url, timestamp, status, detail FROM ledger ORDER BY timestamp"
        ).fetchall()
        return {row["url"]: LedgerEntry.from_record(row["url"], dict(row)) for row in rows}

    def persist_all(self, entries: Dict[str, LedgerEntry]) -> None:
        conn = self.get_connection()
        with conn:
            conn.execute("DELETE FROM ledger")
            conn.executemany(
                "INSERT INTO ledger (url, timestamp, status, detail) VALUES (?, ?, ?, ?)",
                [[e.url, e.timestamp, e.status.value, e.detail] for e in entries.values()],
            )

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


def _get_schema_version(conn: Connection) -> int:
    """Get current schema version from metadata table."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_metadata (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT DEFAULT (datetime('now'))
        )
    """)
    result = conn.execute(
        "SELECT value FROM schema_metadata WHERE key = 'schema_version'"
    ).fetchone()
    return int(result[0]) if result else 0


def _ensure_schema(conn: Connection) -> None:
    """Create the ledger table and stamp the schema version."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS ledger (
            url TEXT PRIMARY KEY,
            timestamp TEXT NOT NULL,
            status TEXT NOT NULL,
            detail TEXT
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_ledger_status ON ledger(status)")
    if _get_schema_version(conn) < SCHEMA_VERSION:
        conn.execute(
            """
            INSERT OR REPLACE INTO schema_metadata (key, value, updated_at)
            VALUES ('schema_version', ?, datetime('now'))
            """,
            [str(SCHEMA_VERSION)],
        )
        log.info(f"[Migration] Schema version set to {SCHEMA_VERSION}")
    conn.commit()
