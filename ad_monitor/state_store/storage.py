"""
Durable key-value storage backing the Entity State Store.

Values are JSON documents, overwritten by key. No multi-key transactions.
"""

import asyncio
import copy
import json
import sqlite3
import threading
from typing import Any, Dict, Protocol


class KeyValueStorage(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    def close(self) -> None: ...


class SQLiteStorage:
    """
    SQLite-backed storage.
    Use ":memory:" for a session-scoped store, a file path to survive restarts.

    `read`/`write` are synchronous, like any sqlite3 call. The async `get`/`set`
    run them on a worker thread so write-through never blocks the event loop.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the key-value table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    async def get(self, key: str, default: Any = None) -> Any:
        return await asyncio.to_thread(self.read, key, default)

    async def set(self, key: str, value: Any) -> None:
        value_json = json.dumps(value, sort_keys=True)
        await asyncio.to_thread(self.write, key, value_json)

    def read(self, key: str, default: Any = None) -> Any:
        with self._conn_lock:
            row = self._conn.execute(
                "SELECT value_json FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    def write(self, key: str, value_json: str) -> None:
        """Upsert an already-serialized value."""
        with self._conn_lock:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value_json, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at
                """,
                (key, value_json),
            )
            self._conn.commit()

    def keys(self) -> list:
        with self._conn_lock:
            rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def close(self) -> None:
        """Close the database connection."""
        with self._conn_lock:
            self._conn.close()


class MemoryStorage:
    """Process-local storage. Values are copied in and out like a real backend."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self.writes: list = []

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes.append(key)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def close(self) -> None:
        pass
