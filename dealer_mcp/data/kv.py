"""KeyValueStore protocol and SQLite implementation for workflow state.

Two shapes of data live here:

* plain keys holding a JSON document (workflow entries, per-location vehicle
  collections, notifications);
* append-only streams of JSON records addressed by ``(stream, seq)``, used for
  per-vehicle movement history, the movement ledger and the cost ledger.

``seq`` is dense and zero-based per stream, so it doubles as a pagination
cursor.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import (
    Any,
    Protocol,
    runtime_checkable,
)

from dealer_mcp.errors import PersistenceError


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal interface for workflow persistence."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> bool: ...
    def keys(self, prefix: str = "") -> list[str]: ...
    def append(self, stream: str, record: dict[str, Any]) -> int: ...
    def read_stream(
        self,
        stream: str,
        *,
        cursor: int = 0,
        limit: int | None = None,
    ) -> list[tuple[int, dict[str, Any]]]: ...
    def stream_length(self, stream: str) -> int: ...
    def transaction(self) -> Any: ...


class SqliteKeyValueStore:
    """SQLite-backed key-value store with WAL mode and append-only streams."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA temp_store=MEMORY")
            self._create_schema()

    # ── Schema ─────────────────────────────────────────────────────

    def _create_schema(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS stream_records (
                stream      TEXT NOT NULL,
                seq         INTEGER NOT NULL,
                payload     TEXT NOT NULL,
                created_at  TEXT NOT NULL,
                PRIMARY KEY (stream, seq)
            );
        """)

    # ── Helpers ────────────────────────────────────────────────────

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _decode(raw: str, *, where: str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise PersistenceError(
                f"Corrupt JSON document at {where}",
                code="corrupt_document",
            ) from exc

    def _commit(self) -> None:
        # Inside an open transaction() the outermost block commits.
        if self._depth == 0:
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[SqliteKeyValueStore]:
        """Group writes so they commit together or not at all.

        Nested blocks join the outermost one.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._conn.commit()
                except sqlite3.Error as exc:
                    self._conn.rollback()
                    raise PersistenceError(str(exc), code="commit_failed") from exc

    # ── Documents ──────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc), code="read_failed", details={"key": key}) from exc
        if row is None:
            return default
        return self._decode(row["value"], where=key)

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, default=str)
        try:
            with self._lock:
                self._conn.execute(
                    """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET
                           value = excluded.value,
                           updated_at = excluded.updated_at""",
                    (key, payload, self._now()),
                )
                self._commit()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc), code="write_failed", details={"key": key}) from exc

    def delete(self, key: str) -> bool:
        try:
            with self._lock:
                cursor = self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                self._commit()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc), code="write_failed", details={"key": key}) from exc
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> list[str]:
        # Escape LIKE wildcards so prefixes match literally.
        pattern = (
            prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        )
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                    (pattern,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(
                str(exc), code="read_failed", details={"prefix": prefix}
            ) from exc
        return [r["key"] for r in rows]

    # ── Streams ────────────────────────────────────────────────────

    def append(self, stream: str, record: dict[str, Any]) -> int:
        """Append a record to a stream and return its sequence number."""
        payload = json.dumps(record, default=str)
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT COALESCE(MAX(seq) + 1, 0) AS next_seq "
                    "FROM stream_records WHERE stream = ?",
                    (stream,),
                ).fetchone()
                seq = int(row["next_seq"])
                self._conn.execute(
                    """INSERT INTO stream_records (stream, seq, payload, created_at)
                       VALUES (?, ?, ?, ?)""",
                    (stream, seq, payload, self._now()),
                )
                self._commit()
        except sqlite3.Error as exc:
            raise PersistenceError(
                str(exc), code="append_failed", details={"stream": stream}
            ) from exc
        return seq

    def read_stream(
        self,
        stream: str,
        *,
        cursor: int = 0,
        limit: int | None = None,
    ) -> list[tuple[int, dict[str, Any]]]:
        """Return ``(seq, record)`` pairs with ``seq >= cursor`` in append order."""
        sql = (
            "SELECT seq, payload FROM stream_records "
            "WHERE stream = ? AND seq >= ? ORDER BY seq"
        )
        params: tuple[Any, ...] = (stream, max(cursor, 0))
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, max(limit, 0))
        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(
                str(exc), code="read_failed", details={"stream": stream}
            ) from exc
        return [
            (int(r["seq"]), self._decode(r["payload"], where=f"{stream}#{r['seq']}"))
            for r in rows
        ]

    def stream_length(self, stream: str) -> int:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM stream_records WHERE stream = ?", (stream,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(
                str(exc), code="read_failed", details={"stream": stream}
            ) from exc
        return row[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
