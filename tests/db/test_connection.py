"""Tests for URL dispatch in connection creation."""

import sys

import pytest

from stepwise.db.connection import _sqlite_path, create_connection
from stepwise.db.sqlite_backend import SQLiteBackend
from stepwise.errors import ConnectFailure


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        (":memory:", ":memory:"),
        ("sqlite://", ":memory:"),
        ("sqlite:", ":memory:"),
        ("sqlite:///:memory:", ":memory:"),
        ("sqlite:///shop.db", "shop.db"),
        ("sqlite:////var/data/shop.db", "/var/data/shop.db"),
        ("sqlite:shop.db", "shop.db"),
        ("data/shop.db", "data/shop.db"),
        ("mysql://localhost/shop", None),
    ],
)
def test_sqlite_path(url, expected):
    assert _sqlite_path(url) == expected


def test_in_memory_connection():
    db = create_connection("sqlite:///:memory:")
    try:
        assert isinstance(db, SQLiteBackend)
        cursor = db.prepare("SELECT 1").execute()
        assert cursor.advance()
    finally:
        db.close()


def test_file_connection_ignores_credentials(tmp_path):
    path = tmp_path / "shop.db"
    db = create_connection(f"sqlite:///{path}", "alice", "secret")
    db.close()
    assert path.exists()


def test_bare_path(tmp_path):
    path = tmp_path / "bare.db"
    db = create_connection(str(path))
    db.close()
    assert path.exists()


def test_empty_url():
    with pytest.raises(ConnectFailure):
        create_connection("  ")


def test_unsupported_scheme():
    with pytest.raises(ConnectFailure) as exc_info:
        create_connection("mysql://localhost/shop")
    assert "unsupported database URL" in exc_info.value.message


def test_postgres_without_driver(monkeypatch):
    monkeypatch.setitem(sys.modules, "stepwise.db.postgres_backend", None)
    with pytest.raises(ConnectFailure) as exc_info:
        create_connection("postgresql://localhost/shop")
    assert "stepwise-sql[postgres]" in exc_info.value.message


def test_postgres_dispatch(monkeypatch):
    pytest.importorskip("psycopg")
    from stepwise.db import postgres_backend

    seen = {}

    def fake_create(url, user="", password=""):
        seen.update(url=url, user=user, password=password)
        return "backend"

    monkeypatch.setattr(postgres_backend.PostgresBackend, "create", staticmethod(fake_create))
    assert create_connection("postgres://db/shop", "app", "pw") == "backend"
    assert seen == {"url": "postgres://db/shop", "user": "app", "password": "pw"}
