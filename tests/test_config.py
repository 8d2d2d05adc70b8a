from __future__ import annotations

import pytest

from redirection_store import db as db_module
from redirection_store.config import SUPPORTS_PORT_GROUP_VALUE, StoreSettings, supports_port_group
from redirection_store.db import Database, connect, get_db_connection


class FakeConnection:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.statements = []
        self.commits = 0

    def execute(self, sql, params=None):
        self.statements.append(sql)

    def commit(self):
        self.commits += 1


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("REDIRECTION_DB_PORT", raising=False)
    settings = StoreSettings(_env_file=None)

    assert settings.redirection_db_backend == "postgres"
    assert settings.redirection_db_port == 5432
    assert settings.redirection_db_schema is None


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("REDIRECTION_DB_PORT", "6543")
    monkeypatch.setenv("REDIRECTION_DB_HOST", "db.internal")

    settings = StoreSettings(_env_file=None)

    assert settings.redirection_db_port == 6543
    assert settings.redirection_db_host == "db.internal"


def test_settings_are_frozen():
    settings = StoreSettings(_env_file=None)

    with pytest.raises(Exception):
        settings.redirection_db_host = "elsewhere"


def test_port_group_capability():
    assert SUPPORTS_PORT_GROUP_VALUE == ":Boolean=false"
    assert supports_port_group() is False


def test_get_db_connection_uses_settings(monkeypatch):
    monkeypatch.setattr(db_module.psycopg, "connect", lambda **kw: FakeConnection(**kw))
    settings = StoreSettings(_env_file=None, redirection_db_host="pg", redirection_db_name="topo")

    conn = get_db_connection(settings)

    assert conn.kwargs == {
        "host": "pg",
        "port": 5432,
        "dbname": "topo",
        "user": "postgres",
        "password": "postgres",
    }
    assert conn.statements == []


def test_get_db_connection_sets_search_path(monkeypatch):
    monkeypatch.setattr(db_module.psycopg, "connect", lambda **kw: FakeConnection(**kw))
    settings = StoreSettings(_env_file=None, redirection_db_schema="redirect")

    conn = get_db_connection(settings)

    assert conn.statements == ["SET search_path TO redirect, public"]
    assert conn.commits == 1


def test_connect_postgres_backend(monkeypatch):
    monkeypatch.setattr(db_module.psycopg, "connect", lambda **kw: FakeConnection(**kw))

    database = connect(StoreSettings(_env_file=None))

    assert database.dialect == "postgres"
    assert database._sql("a = %s") == "a = %s"


def test_connect_sqlite_backend(tmp_path):
    settings = StoreSettings(
        _env_file=None,
        redirection_db_backend="sqlite",
        redirection_sqlite_path=str(tmp_path / "t.db"),
    )

    with connect(settings) as database:
        assert database.dialect == "sqlite"
        assert database._sql("a = %s AND b = %s") == "a = ? AND b = ?"
        assert database.fetchone("PRAGMA foreign_keys") == (1,)


def test_unknown_backend():
    with pytest.raises(ValueError):
        connect(StoreSettings(_env_file=None, redirection_db_backend="oracle"))

    with pytest.raises(ValueError):
        Database(object(), "oracle")
