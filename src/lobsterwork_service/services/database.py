"""Shared SQLite connection with re-entrant immediate-mode transactions."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any

from lobsterwork_service.core.exceptions import StoreTimeoutError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


def _is_busy(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _BUSY_MARKERS)


def _store_timeout(exc: sqlite3.OperationalError) -> StoreTimeoutError:
    return StoreTimeoutError(
        "STORE_TIMEOUT",
        "The task store is busy, retry later",
        {"reason": str(exc)},
    )


class Database:
    """
    One SQLite connection shared by every store.

    All access goes through a re-entrant lock. ``transaction()`` opens a
    ``BEGIN IMMEDIATE`` transaction; nested calls on the same thread join the
    outer transaction, so a lifecycle transition spanning several stores
    commits or rolls back as one unit.
    """

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000) -> None:
        self._lock = RLock()
        self._depth = 0
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")

    def execute_script(self, script: str) -> None:
        """Run a DDL script and commit."""
        with self._lock:
            self._db.executescript(script)
            self._db.commit()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside one atomic write transaction."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self._db
                finally:
                    self._depth -= 1
                return

            try:
                self._db.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                if _is_busy(exc):
                    raise _store_timeout(exc) from exc
                raise

            self._depth = 1
            try:
                yield self._db
                self._db.commit()
            except sqlite3.OperationalError as exc:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                if _is_busy(exc):
                    raise _store_timeout(exc) from exc
                raise
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
            finally:
                self._depth = 0

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Run a read query and return the first row, if any."""
        with self._lock:
            try:
                row: sqlite3.Row | None = self._db.execute(query, params).fetchone()
            except sqlite3.OperationalError as exc:
                if _is_busy(exc):
                    raise _store_timeout(exc) from exc
                raise
        return row

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Run a read query and return every row."""
        with self._lock:
            try:
                rows: list[sqlite3.Row] = self._db.execute(query, params).fetchall()
            except sqlite3.OperationalError as exc:
                if _is_busy(exc):
                    raise _store_timeout(exc) from exc
                raise
        return rows

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
