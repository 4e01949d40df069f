"""Key-value engine adapter over a single-table ``sqlite3`` database.

Every put and delete runs in its own transaction and is committed before
the call returns; the database is opened in WAL mode with synchronous=FULL
so a committed write survives a crash, and an interrupted one is rolled
back on the next open. This module exposes it as get/put/delete/fold and
turns its errors into KeyNotFoundError / EngineError.
"""
from __future__ import annotations
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable, List, Union

logger = logging.getLogger(__name__)

_SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"


class EngineError(Exception):
    """IO failure inside the engine (open, read, write, commit)."""


class KeyNotFoundError(EngineError, KeyError):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f'key not found: {self.key}'


class KVEngine:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        # one connection shared by all threads; every call goes through this lock
        self._lock = threading.RLock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False, isolation_level=None)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=FULL")
            self._conn.execute(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise EngineError(f'cannot open store at {self.path}: {exc}') from exc
        self._closed = False
        logger.debug("opened key-value store at %s", self.path)

    def get(self, key: str) -> bytes:
        with self._lock:
            self._check_open()
            try:
                row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            except sqlite3.Error as exc:
                raise EngineError(f'error reading {key}: {exc}') from exc
            if row is None:
                raise KeyNotFoundError(key)
            return bytes(row[0])

    def put(self, key: str, value: bytes) -> None:
        """Store value under key; committed once this returns."""
        with self._lock:
            self._check_open()
            try:
                with self._transaction():
                    self._conn.execute(
                        "INSERT INTO kv (key, value) VALUES (?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                        (key, sqlite3.Binary(value)),
                    )
            except sqlite3.Error as exc:
                raise EngineError(f'error writing {key}: {exc}') from exc

    def delete(self, key: str) -> None:
        with self._lock:
            self._check_open()
            try:
                with self._transaction():
                    deleted = self._conn.execute("DELETE FROM kv WHERE key = ?", (key,)).rowcount
            except sqlite3.Error as exc:
                raise EngineError(f'error deleting {key}: {exc}') from exc
            if not deleted:
                raise KeyNotFoundError(key)

    def keys(self) -> List[str]:
        with self._lock:
            self._check_open()
            try:
                return [row[0] for row in self._conn.execute("SELECT key FROM kv")]
            except sqlite3.Error as exc:
                raise EngineError(f'error listing keys: {exc}') from exc

    def fold(self, visit: Callable[[str], None]) -> None:
        """Call visit(key) for every key, in no particular order.

        Iterates a snapshot taken up front, so visit may read or write the
        engine. The first exception raised by visit stops the fold and
        propagates to the caller.
        """
        for key in self.keys():
            visit(key)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                raise EngineError(f'error closing store: {exc}') from exc

    def _transaction(self) -> "_Transaction":
        return _Transaction(self._conn)

    def _check_open(self) -> None:
        if self._closed:
            raise EngineError('store is closed')

    def __enter__(self) -> "KVEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class _Transaction:
    """BEGIN IMMEDIATE ... COMMIT, rolled back if the body raises."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def __enter__(self) -> None:
        self._conn.execute("BEGIN IMMEDIATE")

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self._conn.execute("COMMIT")
                return
            except sqlite3.Error:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")
