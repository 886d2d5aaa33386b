"""Database helper module for confirmed code scans."""

from __future__ import annotations

import sqlite3
from pathlib import Path

DB_PATH = Path(__file__).parent / "scans.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL UNIQUE,
    group_key TEXT NOT NULL,
    scanned_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scans_group_key ON scans(group_key);
"""


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """Get a database connection, creating the schema if needed."""
    path = Path(db_path) if db_path is not None else DB_PATH
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    init_database(conn)
    return conn


def init_database(conn: sqlite3.Connection) -> None:
    """Initialize the database with the schema."""
    conn.executescript(SCHEMA)
    conn.commit()


def insert_scan(
    conn: sqlite3.Connection,
    code: str,
    group_key: str,
    scanned_at: float,
) -> int:
    """Insert a scan and return its row id.

    Raises:
        sqlite3.IntegrityError: If the code is already stored.
    """
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO scans (code, group_key, scanned_at) VALUES (?, ?, ?)",
        (code, group_key, scanned_at),
    )
    conn.commit()
    return cursor.lastrowid


def list_scans(conn: sqlite3.Connection) -> list[dict]:
    """Return all scans in insertion order."""
    cursor = conn.cursor()
    cursor.execute("SELECT code, group_key, scanned_at FROM scans ORDER BY id")
    return [dict(row) for row in cursor.fetchall()]


def list_products(conn: sqlite3.Connection) -> list[dict]:
    """Return products with scan counts, sorted by product key."""
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT group_key, COUNT(*) AS scan_count, MAX(scanned_at) AS last_scanned_at
        FROM scans
        GROUP BY group_key
        ORDER BY group_key
        """
    )
    return [dict(row) for row in cursor.fetchall()]


def count_scans(conn: sqlite3.Connection) -> int:
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM scans")
    return cursor.fetchone()[0]


def clear_scans(conn: sqlite3.Connection) -> int:
    """Delete every scan and return how many were removed."""
    cursor = conn.cursor()
    cursor.execute("DELETE FROM scans")
    conn.commit()
    return cursor.rowcount
