"""Unit tests for the shared SQLite Database."""

from __future__ import annotations

import pytest

from lobsterwork_service.core.exceptions import StoreTimeoutError
from lobsterwork_service.services.database import Database


@pytest.fixture
def kv_db(database: Database) -> Database:
    database.execute_script("CREATE TABLE kv (k TEXT PRIMARY KEY, v TEXT NOT NULL);")
    return database


def _count(db: Database) -> int:
    row = db.fetch_one("SELECT COUNT(*) FROM kv")
    assert row is not None
    return int(row[0])


@pytest.mark.unit
def test_transaction_commits(kv_db):
    """Writes inside a transaction are visible after it exits."""
    with kv_db.transaction() as conn:
        conn.execute("INSERT INTO kv VALUES ('a', '1')")

    row = kv_db.fetch_one("SELECT v FROM kv WHERE k = ?", ("a",))
    assert row is not None
    assert row["v"] == "1"


@pytest.mark.unit
def test_transaction_rolls_back_on_error(kv_db):
    """An exception escaping the block discards every write."""
    with pytest.raises(RuntimeError), kv_db.transaction() as conn:
        conn.execute("INSERT INTO kv VALUES ('a', '1')")
        raise RuntimeError("boom")

    assert _count(kv_db) == 0


@pytest.mark.unit
def test_nested_transaction_joins_outer(kv_db):
    """A nested block commits or rolls back with the outer one."""
    with pytest.raises(RuntimeError), kv_db.transaction() as conn:
        conn.execute("INSERT INTO kv VALUES ('a', '1')")
        with kv_db.transaction() as inner:
            inner.execute("INSERT INTO kv VALUES ('b', '2')")
        raise RuntimeError("boom")

    assert _count(kv_db) == 0

    with kv_db.transaction() as conn:
        with kv_db.transaction() as inner:
            inner.execute("INSERT INTO kv VALUES ('b', '2')")
        conn.execute("INSERT INTO kv VALUES ('c', '3')")

    assert _count(kv_db) == 2


@pytest.mark.unit
def test_fetch_all_returns_rows(kv_db):
    with kv_db.transaction() as conn:
        conn.executemany("INSERT INTO kv VALUES (?, ?)", [("a", "1"), ("b", "2")])

    rows = kv_db.fetch_all("SELECT k FROM kv ORDER BY k")
    assert [row["k"] for row in rows] == ["a", "b"]


@pytest.mark.unit
def test_locked_store_raises_store_timeout(kv_db, db_path):
    """A writer that cannot get the lock fails with a retryable StoreTimeoutError."""
    other = Database(db_path, busy_timeout_ms=0)
    try:
        with kv_db.transaction() as conn:
            conn.execute("INSERT INTO kv VALUES ('a', '1')")
            with pytest.raises(StoreTimeoutError) as exc_info, other.transaction():
                pass
    finally:
        other.close()

    assert exc_info.value.error == "STORE_TIMEOUT"
    assert exc_info.value.status_code == 503
    assert _count(kv_db) == 1


@pytest.mark.unit
def test_creates_parent_directory(tmp_path):
    """The database file's directory is created on demand."""
    db = Database(str(tmp_path / "nested" / "dir" / "store.db"))
    db.close()
    assert (tmp_path / "nested" / "dir" / "store.db").exists()
