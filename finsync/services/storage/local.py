"""
SQLite Key-Value Store

DESIGN DECISION: The device store is a single SQLite table of
(key, JSON text) rows because:
1. SQLite ships with Python and survives process restarts
2. Every write is atomic per key, which is all callers rely on
3. Prefix listing (pending markers) is one literal comparison on the leading characters of each key

TRADEOFFS:
- No multi-key transactions are exposed (callers don't need them)
- Values must be JSON-serializable
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional

from finsync.services.storage.interface import (
    JsonValue,
    LocalStoreError,
    LocalStoreInterface,
)


_SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"


class SQLiteLocalStore(LocalStoreInterface):
    """Durable key-value store backed by one SQLite file."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        """Open the database lazily and make sure the table exists."""
        if self._conn is None:
            try:
                if self._db_path != ":memory:":
                    Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self._db_path)
                self._conn.execute(_SCHEMA)
                self._conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise LocalStoreError(f"Failed to open local store {self._db_path}: {e}")
        return self._conn

    async def get(self, key: str) -> Optional[JsonValue]:
        try:
            row = self._connect().execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to read {key}: {e}")
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise LocalStoreError(f"Corrupt value stored under {key}: {e}")

    async def set(self, key: str, value: JsonValue) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise LocalStoreError(f"Value for {key} is not JSON-serializable: {e}")
        try:
            conn = self._connect()
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, payload),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to write {key}: {e}")

    async def remove(self, key: str) -> None:
        try:
            conn = self._connect()
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to remove {key}: {e}")

    async def list_keys(self, prefix: str = "") -> list[str]:
        # LIKE treats _ and % as wildcards, and pending keys contain underscores
        try:
            rows = self._connect().execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to list keys: {e}")
        return [row[0] for row in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
