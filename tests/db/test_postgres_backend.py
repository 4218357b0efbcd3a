"""Unit tests for PostgresBackend wrappers. No database needed."""

from types import SimpleNamespace

import pytest

pytest.importorskip("psycopg")

from stepwise.db.backend import BackendError  # noqa: E402
from stepwise.db.postgres_backend import (  # noqa: E402
    PostgresBackend,
    PostgresCursor,
    PostgresStatement,
    _translate_placeholders,
    translate_error,
)
from stepwise.models.types import ColumnType  # noqa: E402


class TestTranslatePlaceholders:
    """Test ? to %s placeholder translation."""

    def test_no_placeholders(self):
        assert _translate_placeholders("SELECT 1") == ("SELECT 1", 0)

    def test_percent_untouched_without_placeholders(self):
        assert _translate_placeholders("SELECT '50%'") == ("SELECT '50%'", 0)

    def test_single_placeholder(self):
        assert _translate_placeholders("SELECT * FROM t WHERE id = ?") == (
            "SELECT * FROM t WHERE id = %s",
            1,
        )

    def test_multiple_placeholders(self):
        sql = "INSERT INTO t (a, b, c) VALUES (?, ?, ?)"
        assert _translate_placeholders(sql) == ("INSERT INTO t (a, b, c) VALUES (%s, %s, %s)", 3)

    def test_percent_escaped_with_placeholders(self):
        sql = "SELECT * FROM t WHERE name LIKE '50%' AND id = ?"
        assert _translate_placeholders(sql) == (
            "SELECT * FROM t WHERE name LIKE '50%%' AND id = %s",
            1,
        )

    def test_question_mark_in_string_literal_kept(self):
        sql = "SELECT '?' FROM t WHERE x = ?"
        assert _translate_placeholders(sql) == ("SELECT '?' FROM t WHERE x = %s", 1)

    def test_question_mark_in_block_comment_kept(self):
        sql = "SELECT /* why? */ a FROM t WHERE x = ?"
        assert _translate_placeholders(sql) == ("SELECT /* why? */ a FROM t WHERE x = %s", 1)

    def test_empty_sql(self):
        assert _translate_placeholders("") == ("", 0)


def test_translate_error():
    exc = SimpleNamespace(
        sqlstate="42P01", diag=SimpleNamespace(message_primary='relation "t" does not exist')
    )
    error = translate_error(exc)
    assert error.sqlstate == "42P01"
    assert error.message == 'relation "t" does not exist'


class FakeTypes:
    def __init__(self, names):
        self._names = names

    def get(self, oid):
        name = self._names.get(oid)
        return SimpleNamespace(name=name) if name is not None else None


class FakePgCursor:
    """Minimal psycopg.Cursor stand-in."""

    def __init__(self, rows=(), type_codes=(), rowcount=-1, returns_rows=True):
        self._rows = list(rows)
        self.description = (
            [SimpleNamespace(type_code=code) for code in type_codes] if returns_rows else None
        )
        self.rowcount = rowcount
        self.executed = None
        self.closed = False

    def execute(self, sql, params=None):
        self.executed = (sql, params)

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def close(self):
        self.closed = True


class FakePgConnection:
    def __init__(self, cursor=None, type_names=None):
        self._cursor = cursor
        self.adapters = SimpleNamespace(types=FakeTypes(type_names or {}))
        self.closed = False
        self.autocommit = True
        self.commits = 0

    def cursor(self):
        return self._cursor

    def commit(self):
        self.commits += 1


class TestPostgresCursor:
    """PostgresCursor row movement and column access."""

    def test_rows(self):
        pg = FakePgCursor(rows=[(1, "a"), (2, "b")], type_codes=(23, 25))
        cursor = PostgresCursor(pg, FakePgConnection())
        assert cursor.advance()
        assert cursor.read_at(1, ColumnType.INTEGER) == 1
        assert cursor.read_at(2, ColumnType.STRING) == "a"
        assert cursor.advance()
        assert not cursor.advance()
        assert not cursor.advance()

    def test_read_without_row(self):
        cursor = PostgresCursor(FakePgCursor(type_codes=(23,)), FakePgConnection())
        with pytest.raises(BackendError) as exc_info:
            cursor.read_at(1, ColumnType.INTEGER)
        assert exc_info.value.sqlstate == "24000"

    def test_ordinal_out_of_range(self):
        cursor = PostgresCursor(FakePgCursor(rows=[(1,)], type_codes=(23,)), FakePgConnection())
        cursor.advance()
        with pytest.raises(BackendError) as exc_info:
            cursor.read_at(2, ColumnType.INTEGER)
        assert exc_info.value.sqlstate == "07009"

    def test_column_type_name(self):
        conn = FakePgConnection(type_names={23: "int4"})
        cursor = PostgresCursor(FakePgCursor(type_codes=(23, 600)), conn)
        assert cursor.column_type_name(1) == "int4"
        assert cursor.column_type_name(2) == 600

    def test_close(self):
        pg = FakePgCursor(rows=[(1,)], type_codes=(23,))
        cursor = PostgresCursor(pg, FakePgConnection())
        cursor.close()
        assert pg.closed
        assert not cursor.advance()


class TestPostgresStatement:
    """PostgresStatement binding and execution."""

    def test_execute_write(self):
        pg = FakePgCursor(rowcount=2, returns_rows=False)
        stmt = PostgresStatement(FakePgConnection(pg), "UPDATE t SET a = ? WHERE b = ?")
        stmt.bind_at(1, 5, ColumnType.INTEGER)
        stmt.bind_at(2, "x", ColumnType.STRING)
        assert stmt.execute() == 2
        assert pg.executed == ("UPDATE t SET a = %s WHERE b = %s", [5, "x"])
        assert pg.closed

    def test_execute_query(self):
        pg = FakePgCursor(rows=[(1,)], type_codes=(23,))
        stmt = PostgresStatement(FakePgConnection(pg), "SELECT 1")
        cursor = stmt.execute()
        assert isinstance(cursor, PostgresCursor)
        assert pg.executed == ("SELECT 1", None)

    def test_missing_parameter(self):
        stmt = PostgresStatement(FakePgConnection(FakePgCursor()), "SELECT ?, ?")
        stmt.bind_at(1, 1, ColumnType.LONG)
        with pytest.raises(BackendError) as exc_info:
            stmt.execute()
        assert exc_info.value.sqlstate == "07001"
        assert "2" in exc_info.value.message

    def test_bind_validates(self):
        stmt = PostgresStatement(FakePgConnection(), "SELECT ?")
        with pytest.raises(BackendError) as exc_info:
            stmt.bind_at(1, "x", ColumnType.INTEGER)
        assert exc_info.value.sqlstate == "22018"

    def test_str_keeps_question_marks(self):
        assert str(PostgresStatement(FakePgConnection(), "SELECT ?")) == "SELECT ?"


class TestPostgresBackend:
    """PostgresBackend connection handling."""

    def test_prepare_on_closed_connection(self):
        conn = FakePgConnection()
        conn.closed = True
        with pytest.raises(BackendError) as exc_info:
            PostgresBackend(conn).prepare("SELECT 1")
        assert exc_info.value.sqlstate == "08003"

    def test_enabling_auto_commit_commits_first(self):
        conn = FakePgConnection()
        backend = PostgresBackend(conn)
        backend.set_auto_commit(False)
        assert conn.autocommit is False
        assert conn.commits == 0
        backend.set_auto_commit(True)
        assert conn.autocommit is True
        assert conn.commits == 1
