"""
Database adapter for the redirection store.

Provides get_db_connection() for PostgreSQL (psycopg3) and a Database wrapper
that gives the rest of the package one execution interface over either
PostgreSQL or SQLite. SQL is written once with %s placeholders; the SQLite
dialect rewrites them to ?.

Usage:
    from redirection_store.db import connect

    db = connect()                    # backend from REDIRECTION_DB_BACKEND
    db = Database.sqlite(":memory:")  # local / tests
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Sequence

import psycopg

from .config import BACKENDS, StoreSettings, get_settings

logger = logging.getLogger(__name__)


def get_db_connection(
    settings: StoreSettings | None = None,
    *,
    schema: str | None = None,
) -> psycopg.Connection:
    """
    Get a psycopg3 connection to the redirection store database.

    Args:
        settings: Connection settings. Defaults to the process settings.
        schema: If provided, SET search_path on the connection.
                Defaults to REDIRECTION_DB_SCHEMA if set and not 'public'.
    """
    settings = settings or get_settings()

    conn = psycopg.connect(
        host=settings.redirection_db_host,
        port=settings.redirection_db_port,
        dbname=settings.redirection_db_name,
        user=settings.redirection_db_user,
        password=settings.redirection_db_password,
    )

    target_schema = schema or settings.redirection_db_schema
    if target_schema and target_schema != "public":
        conn.execute(f"SET search_path TO {target_schema}, public")
        # search_path is undone by a rollback unless committed
        conn.commit()

    return conn


class Database:
    """A DB-API connection plus the dialect it speaks."""

    def __init__(self, conn: Any, dialect: str):
        if dialect not in BACKENDS:
            raise ValueError(f"Unknown backend '{dialect}'. Known: {list(BACKENDS)}")
        self.conn = conn
        self.dialect = dialect

    @classmethod
    def postgres(cls, settings: StoreSettings | None = None) -> Database:
        return cls(get_db_connection(settings), "postgres")

    @classmethod
    def sqlite(cls, path: str = ":memory:") -> Database:
        conn = sqlite3.connect(path)
        conn.execute("PRAGMA foreign_keys = ON")
        return cls(conn, "sqlite")

    def _sql(self, sql: str) -> str:
        if self.dialect == "sqlite":
            return sql.replace("%s", "?")
        return sql

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the affected row count."""
        cursor = self.conn.execute(self._sql(sql), tuple(params))
        return cursor.rowcount

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        cursor = self.conn.execute(self._sql(sql), tuple(params))
        return [tuple(row) for row in cursor.fetchall()]

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> tuple | None:
        cursor = self.conn.execute(self._sql(sql), tuple(params))
        row = cursor.fetchone()
        return tuple(row) if row is not None else None

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def connect(settings: StoreSettings | None = None) -> Database:
    """Open the configured backend."""
    settings = settings or get_settings()
    backend = settings.redirection_db_backend.lower()

    if backend == "sqlite":
        logger.debug("Opening SQLite store at %s", settings.redirection_sqlite_path)
        return Database.sqlite(settings.redirection_sqlite_path)
    if backend == "postgres":
        logger.debug(
            "Opening PostgreSQL store at %s:%s/%s",
            settings.redirection_db_host,
            settings.redirection_db_port,
            settings.redirection_db_name,
        )
        return Database.postgres(settings)
    raise ValueError(f"Unknown backend '{backend}'. Known: {list(BACKENDS)}")
