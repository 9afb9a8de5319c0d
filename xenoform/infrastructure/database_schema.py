"""
Database schema for Xenoform.

One table: favorites, a key/value store keyed by (client_id, name).
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from xenoform.observability.logging import get_logger

logger = get_logger(__name__)

EXPECTED_TABLES: frozenset[str] = frozenset({"favorites"})

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS favorites (
        client_id TEXT NOT NULL,
        name TEXT NOT NULL,
        payload TEXT NOT NULL,
        image_url TEXT,
        created_at TEXT NOT NULL,
        PRIMARY KEY (client_id, name)
    );

    CREATE INDEX IF NOT EXISTS idx_favorites_client_created
        ON favorites (client_id, created_at);
"""


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Args:
        db_path: Path to the database file

    Side Effects:
        - Creates the parent directory if needed
        - Creates tables and indexes if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Check that every expected table exists.

    Raises:
        ValueError: If tables are missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    present = {row[0] for row in rows}
    missing = sorted(EXPECTED_TABLES - present)
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
