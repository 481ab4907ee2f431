"""Versioned schema for the snapshot database."""

import sqlite3
from datetime import UTC, datetime

import structlog

from prerender.config.constants import COMPONENT_STORE
from prerender.store.errors import MigrationError


logger = structlog.get_logger()

SCHEMA_VERSION = 1

# Script that brings the database up to each version from the one before.
UPGRADES: dict[int, str] = {
    1: """
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL UNIQUE,
    body TEXT NOT NULL,
    status INTEGER NOT NULL,
    headers TEXT NOT NULL DEFAULT '{}',
    tags TEXT NOT NULL DEFAULT '[]',
    content_hash TEXT NOT NULL,
    response_time_ms INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_snapshots_updated_at ON snapshots(updated_at);
CREATE INDEX IF NOT EXISTS idx_snapshots_status ON snapshots(status);
""",
}


def read_schema_version(conn: sqlite3.Connection) -> int:
    """Get the schema version recorded in the database, 0 when empty."""
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version "
        "(version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
    )
    conn.commit()
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def ensure_schema(conn: sqlite3.Connection) -> list[int]:
    """Upgrade the database to SCHEMA_VERSION.

    Each upgrade commits together with its schema_version row, so a failed
    upgrade leaves the database at the last good version.

    Args:
        conn: Open connection.

    Returns:
        Versions applied, oldest first; empty when already current.

    Raises:
        MigrationError: If an upgrade fails, or the database was written by
            a newer release.
    """
    log = logger.bind(component=COMPONENT_STORE, operation="schema_upgrade")
    current = read_schema_version(conn)
    if current > SCHEMA_VERSION:
        raise MigrationError(
            current, f"database is newer than supported version {SCHEMA_VERSION}"
        )

    applied: list[int] = []
    for version in range(current + 1, SCHEMA_VERSION + 1):
        try:
            conn.executescript(UPGRADES[version])
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.now(UTC).isoformat()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            log.error("schema_upgrade_failed", version=version, error=str(e))
            raise MigrationError(version, str(e)) from e

        log.info("schema_upgraded", version=version)
        applied.append(version)

    return applied
