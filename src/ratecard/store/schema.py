"""SQLite schema for rate card persistence.

Catalogs are stored as JSON documents alongside the columns needed for
filtering and compare-and-swap (owner, status, version, public id).
History rows are append-only and keyed by ``(catalog_id, version)``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def init_ratecard_tables(conn: sqlite3.Connection) -> None:
    """Create the catalogs and catalog_history tables if they do not exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS catalogs (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            status TEXT NOT NULL,
            version INTEGER NOT NULL,
            public_id TEXT UNIQUE,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            document TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS catalog_history (
            id TEXT PRIMARY KEY,
            catalog_id TEXT NOT NULL REFERENCES catalogs (id),
            version INTEGER NOT NULL,
            change_type TEXT NOT NULL,
            change_summary TEXT NOT NULL DEFAULT '',
            edited_by TEXT,
            snapshot TEXT NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE (catalog_id, version)
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_catalogs_owner_status ON catalogs (owner_id, status)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_catalogs_public_id ON catalogs (public_id)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_history_catalog_version "
        "ON catalog_history (catalog_id, version DESC)"
    )

    conn.commit()


def init_ratecard_db(db_path: Path | str) -> sqlite3.Connection:
    """Open the rate card database with WAL mode and create its tables.

    The connection runs in autocommit mode (``isolation_level=None``) so
    that transactions are opened explicitly with ``BEGIN IMMEDIATE`` by the
    repository.  It may be shared across threads; the repository serialises
    access with a lock.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_ratecard_tables(conn)
    return conn


def close_ratecard_db(conn: sqlite3.Connection) -> None:
    conn.close()
