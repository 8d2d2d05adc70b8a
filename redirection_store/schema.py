"""
Table definitions for the redirection topology.

The same DDL runs on PostgreSQL and SQLite. External identifiers are indexed
but not unique: uniqueness on them is advisory and duplicates are reported by
the lookups. The only storage-level uniqueness is the 1:1 binding of a hook
to its inspected port.
"""

from __future__ import annotations

import logging

from .db import Database

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS port_group (
        id TEXT PRIMARY KEY,
        element_id TEXT,
        parent_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS port (
        id TEXT PRIMARY KEY,
        element_id TEXT,
        device_owner_id TEXT,
        mac_addresses TEXT NOT NULL DEFAULT '[]',
        port_ips TEXT NOT NULL DEFAULT '[]',
        port_group_id TEXT REFERENCES port_group(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inspection_port (
        id TEXT PRIMARY KEY,
        element_id TEXT,
        ingress_port_id TEXT REFERENCES port(id),
        egress_port_id TEXT REFERENCES port(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inspection_hook (
        id TEXT PRIMARY KEY,
        inspected_port_id TEXT UNIQUE REFERENCES port(id),
        inspection_port_id TEXT REFERENCES inspection_port(id) ON DELETE RESTRICT,
        hook_order BIGINT,
        tag BIGINT,
        enc_type TEXT NOT NULL,
        failure_policy_type TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_port_element ON port(element_id)",
    "CREATE INDEX IF NOT EXISTS idx_port_device_owner ON port(device_owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_inspection_port_element ON inspection_port(element_id)",
    "CREATE INDEX IF NOT EXISTS idx_hook_inspection_port ON inspection_hook(inspection_port_id)",
)

TABLES = ("port_group", "port", "inspection_port", "inspection_hook")


def init_schema(db: Database) -> None:
    """Create tables and indexes. Safe to re-run."""
    try:
        for statement in SCHEMA_STATEMENTS:
            db.execute(statement)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Schema ready (%s): %s", db.dialect, ", ".join(TABLES))
