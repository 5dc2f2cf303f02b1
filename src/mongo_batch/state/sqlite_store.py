from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from mongo_batch.state.codec import decode_value, encode_value
from mongo_batch.utils.time import utc_now_iso


class SQLiteCheckpointStore:
    """SQLite-backed checkpoint store with per-key expiry."""

    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self._clock = clock
        self._ensure_parent_dir(path)
        self._ensure_schema()

    def get(self, key: str, default: Any = None) -> Any:
        now = self._clock()
        with self._session() as conn:
            row = conn.execute(
                "SELECT value_json, expires_at FROM checkpoints WHERE key = ?",
                (key,),
            ).fetchone()
            if not row:
                return default
            if row["expires_at"] is not None and now >= float(row["expires_at"]):
                conn.execute("DELETE FROM checkpoints WHERE key = ?", (key,))
                return default
        return decode_value(row["value_json"])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO checkpoints (key, value_json, expires_at, updated_at_utc)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    expires_at = excluded.expires_at,
                    updated_at_utc = excluded.updated_at_utc
                """,
                (key, encode_value(value), expires_at, utc_now_iso()),
            )
        return True

    def delete(self, key: str) -> bool:
        with self._session() as conn:
            cur = conn.execute("DELETE FROM checkpoints WHERE key = ?", (key,))
            return cur.rowcount > 0

    def has(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def get_many(self, keys: Iterable[str], default: Any = None) -> List[Any]:
        return [self.get(key, default) for key in keys]

    def set_many(self, values: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        for key, value in values.items():
            self.set(key, value, ttl)
        return True

    def delete_many(self, keys: Iterable[str]) -> int:
        return sum(1 for key in list(keys) if self.delete(key))

    def purge_expired(self) -> int:
        """Delete every expired row. Returns the number of rows removed."""
        with self._session() as conn:
            cur = conn.execute(
                "DELETE FROM checkpoints WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            return cur.rowcount

    def dump(self) -> Dict[str, Any]:
        """Live checkpoints keyed by name, for inspection."""
        with self._session() as conn:
            rows = conn.execute("SELECT key FROM checkpoints ORDER BY key").fetchall()
        result: Dict[str, Any] = {}
        sentinel = object()
        for row in rows:
            value = self.get(row["key"], sentinel)
            if value is not sentinel:
                result[row["key"]] = value
        return result

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS checkpoints (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    expires_at REAL,
                    updated_at_utc TEXT NOT NULL
                )
                """
            )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self):
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _ensure_parent_dir(self, path: str) -> None:
        parent = Path(path).parent
        if str(parent) not in {"", "."}:
            parent.mkdir(parents=True, exist_ok=True)
