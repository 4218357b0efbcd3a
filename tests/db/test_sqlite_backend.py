"""Tests for the SQLite backend and its SQLSTATE derivation."""

import sqlite3

import pytest

from stepwise.db.backend import BackendError
from stepwise.db.sqlite_backend import SQLiteBackend, translate_error
from stepwise.models.types import ColumnType


@pytest.fixture
def db():
    backend = SQLiteBackend.open(":memory:")
    backend.prepare("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)").execute()
    yield backend
    backend.close()


def _sqlstate_of(db, sql, *params):
    stmt = db.prepare(sql)
    for ordinal, value in enumerate(params, start=1):
        stmt.bind_at(ordinal, value, ColumnType.infer(value))
    with pytest.raises(BackendError) as exc_info:
        stmt.execute()
    return exc_info.value.sqlstate


class TestSqlstate:
    """SQLSTATEs derived from SQLite error messages."""

    def test_syntax_error(self, db):
        assert _sqlstate_of(db, "SELEC 1") == "42000"

    def test_incomplete_input(self, db):
        assert _sqlstate_of(db, "SELECT (1") == "42000"

    def test_no_such_table(self, db):
        assert _sqlstate_of(db, "SELECT * FROM missing") == "42S02"

    def test_no_such_column(self, db):
        assert _sqlstate_of(db, "SELECT nope FROM t") == "42S22"

    def test_value_count(self, db):
        assert _sqlstate_of(db, "INSERT INTO t (id, name) VALUES (?)", 1) == "21S01"

    def test_integrity(self, db):
        db.prepare("INSERT INTO t (id, name) VALUES (1, 'a')").execute()
        assert _sqlstate_of(db, "INSERT INTO t (id, name) VALUES (1, 'b')") == "23000"

    def test_datatype_mismatch(self, db):
        assert _sqlstate_of(db, "INSERT INTO t (id, name) VALUES ('x', 'y')") == "HY000"

    def test_other_errors_use_sqlite_error_name(self):
        exc = sqlite3.OperationalError("database is locked")
        exc.sqlite_errorname = "SQLITE_BUSY"
        assert translate_error(exc).sqlstate == "SQLITE_BUSY"

    def test_unbound_parameter(self, db):
        stmt = db.prepare("SELECT ?")
        with pytest.raises(BackendError) as exc_info:
            stmt.execute()
        assert exc_info.value.sqlstate == "07001"


class TestCursor:
    """SQLiteCursor row movement and column access."""

    def test_rows_and_exhaustion(self, db):
        db.prepare("INSERT INTO t (id, name) VALUES (1, 'a'), (2, 'b')").execute()
        cursor = db.prepare("SELECT id, name FROM t ORDER BY id").execute()
        assert cursor.advance()
        assert cursor.read_at(1, ColumnType.INTEGER) == 1
        assert cursor.read_at(2, ColumnType.STRING) == "a"
        assert cursor.advance()
        assert not cursor.advance()
        assert not cursor.advance()
        cursor.close()

    def test_read_before_advance(self, db):
        cursor = db.prepare("SELECT 1").execute()
        with pytest.raises(BackendError) as exc_info:
            cursor.read_at(1, ColumnType.INTEGER)
        assert exc_info.value.sqlstate == "24000"

    def test_ordinal_out_of_range(self, db):
        cursor = db.prepare("SELECT 1").execute()
        cursor.advance()
        with pytest.raises(BackendError) as exc_info:
            cursor.read_at(2, ColumnType.INTEGER)
        assert exc_info.value.sqlstate == "07009"
        with pytest.raises(BackendError):
            cursor.read_at(0, ColumnType.INTEGER)

    def test_column_type_name(self, db):
        cursor = db.prepare("SELECT 1, 1.5, 'x', x'00', NULL").execute()
        cursor.advance()
        names = [cursor.column_type_name(n) for n in range(1, 6)]
        assert names == ["INTEGER", "REAL", "TEXT", "BLOB", "NULL"]


class TestStatement:
    """SQLiteStatement binding and execution."""

    def test_write_returns_rowcount(self, db):
        stmt = db.prepare("INSERT INTO t (id, name) VALUES (?, ?)")
        stmt.bind_at(1, 5, ColumnType.LONG)
        stmt.bind_at(2, "five", ColumnType.STRING)
        assert stmt.execute() == 1

    def test_placeholder_count(self, db):
        assert db.prepare("SELECT ?, '?', ?").placeholder_count == 2

    def test_block_comment_does_not_need_a_binding(self, db):
        stmt = db.prepare("INSERT INTO t (id, name) /* name? */ VALUES (?, ?)")
        assert stmt.placeholder_count == 2
        stmt.bind_at(1, 7, ColumnType.LONG)
        stmt.bind_at(2, "seven", ColumnType.STRING)
        assert stmt.execute() == 1

    def test_bind_out_of_range(self, db):
        stmt = db.prepare("SELECT ?")
        with pytest.raises(BackendError) as exc_info:
            stmt.bind_at(2, 1, ColumnType.LONG)
        assert exc_info.value.sqlstate == "07009"

    def test_str(self, db):
        assert str(db.prepare("SELECT 1")) == "SELECT 1"


class TestTransactions:
    """Commit and rollback on the SQLite connection."""

    def _count(self, db):
        cursor = db.prepare("SELECT COUNT(*) FROM t").execute()
        cursor.advance()
        count = cursor.read_at(1, ColumnType.INTEGER)
        cursor.close()
        return count

    def test_manual_commit(self, db):
        db.set_auto_commit(False)
        db.prepare("INSERT INTO t (id, name) VALUES (1, 'a')").execute()
        db.commit()
        db.rollback()
        assert self._count(db) == 1

    def test_rollback(self, db):
        db.set_auto_commit(False)
        db.prepare("INSERT INTO t (id, name) VALUES (1, 'a')").execute()
        db.rollback()
        assert self._count(db) == 0

    def test_closed_connection(self, db):
        db.close()
        with pytest.raises(BackendError) as exc_info:
            db.prepare("SELECT 1")
        assert exc_info.value.sqlstate == "08003"


def test_open_file(tmp_path):
    path = tmp_path / "nested" / "shop.db"
    db = SQLiteBackend.open(path)
    try:
        db.prepare("CREATE TABLE t (id INTEGER)").execute()
    finally:
        db.close()
    assert path.exists()
