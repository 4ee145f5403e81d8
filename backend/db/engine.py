"""SQLite storage handle for ProjectHub.

Single-file database with WAL mode for concurrent reads. A ``Database`` is
built once by the process entry point and handed to every store; there is no
module-level connection state.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

log = logging.getLogger("projecthub.db")

_SCHEMA_FILE = Path(__file__).parent / "schema.sql"
_DB_VERSION = "1.2.0"


def new_id() -> str:
    """Generate a new UUID hex ID."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Fixed-width UTC timestamp, so stored values compare correctly as text."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
    return to_iso(utcnow())


class Database:
    """Owns the database file path and hands out short-lived connections."""

    def __init__(self, path: Path, busy_timeout_ms: int = 5000) -> None:
        self.path = Path(path)
        self._busy_timeout_ms = busy_timeout_ms
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.path), timeout=self._busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
        return conn

    def init(self) -> None:
        """Create tables if they don't exist. Safe to call multiple times."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        log.info("Initializing database at %s", self.path)
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA_FILE.read_text(encoding="utf-8"))
            conn.execute(
                "INSERT OR REPLACE INTO system_config (key, value) VALUES (?, ?)",
                ("db_version", _DB_VERSION),
            )
            conn.commit()
        finally:
            conn.close()
        self._initialized = True
        log.info("Database initialized (version %s)", _DB_VERSION)

    def ensure_initialized(self) -> None:
        # Re-initialize if the file was removed after the first init.
        if self._initialized and not self.path.exists():
            self._initialized = False
        if not self._initialized:
            self.init()

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """One connection per unit of work; commit on success, rollback on error.

        Usage:
            with db.connect() as conn:
                conn.execute("SELECT ...")
        """
        self.ensure_initialized()
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Like ``connect`` but takes the write lock up front (BEGIN IMMEDIATE).

        Reads made inside the block cannot be invalidated by another writer
        before this transaction commits.
        """
        self.ensure_initialized()
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        with self.connect() as conn:
            row = conn.execute(sql, params).fetchone()
            return dict(row) if row else None

    def fetch_all(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [dict(r) for r in rows]

    def get_system_config(self, key: str, default: str = "") -> str:
        row = self.fetch_one("SELECT value FROM system_config WHERE key = ?", (key,))
        return row["value"] if row else default

    def set_system_config(self, key: str, value: str) -> None:
        with self.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO system_config (key, value) VALUES (?, ?)",
                (key, value),
            )
