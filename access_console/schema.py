"""
SQLite Schema Initialization.

Creates the local tables idempotently and records the schema version in a
``schema_version`` table so later changes can be rolled forward.

``auth_session`` is a single-row table (``id = 1``): the whole
authenticated session is one encrypted blob, so it is written and deleted
as a unit.

Usage::

    from access_console.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from access_console.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS auth_session (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        encrypted_payload BLOB NOT NULL,
        nonce BLOB NOT NULL,
        tag BLOB NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
)


def _get_version(conn: sqlite3.Connection) -> int:
    try:
        row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    except sqlite3.OperationalError:
        return 0
    return int(row[0]) if row else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Create every table and stamp the schema version.

    Safe to call on every startup.  The whole operation runs in one
    transaction; on failure it is rolled back and re-raised.
    """
    version = _get_version(conn)
    if version >= CURRENT_SCHEMA_VERSION:
        logger.debug("Schema already at version %d.", version)
        return

    try:
        for ddl in _TABLE_DEFINITIONS:
            conn.execute(ddl)
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET version = excluded.version
            """,
            (CURRENT_SCHEMA_VERSION,),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.error("Schema initialisation failed; rolled back.", exc_info=True)
        raise

    logger.info(
        "Schema initialised: version %d -> %d.", version, CURRENT_SCHEMA_VERSION,
    )
