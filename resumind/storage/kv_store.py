from __future__ import annotations

import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Protocol


class KeyValueStoreError(RuntimeError):
    pass


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def list(self, prefix: str = "") -> list[str]: ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteKeyValueStore:
    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is not None:
                return self._conn

            directory = os.path.dirname(self._db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            self._conn = conn
            return conn

    def init(self) -> None:
        try:
            self._get_connection()
        except sqlite3.Error as exc:
            raise KeyValueStoreError(f"Failed to open record store: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            conn = self._get_connection()
            with self._lock:
                row = conn.execute("SELECT value FROM kv_records WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise KeyValueStoreError(f"Failed to read '{key}': {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = _utc_now()
        try:
            conn = self._get_connection()
            with self._lock:
                conn.execute(
                    """
                    INSERT INTO kv_records (key, value, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, now, now),
                )
        except sqlite3.Error as exc:
            raise KeyValueStoreError(f"Failed to write '{key}': {exc}") from exc

    def list(self, prefix: str = "") -> list[str]:
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        try:
            conn = self._get_connection()
            with self._lock:
                rows = conn.execute(
                    """
                    SELECT key FROM kv_records
                    WHERE key LIKE ? ESCAPE '\\'
                    ORDER BY created_at DESC, rowid DESC
                    """,
                    (pattern,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise KeyValueStoreError(f"Failed to list '{prefix}': {exc}") from exc
        return [row[0] for row in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
