"""SQLite read layer for the Apple Notes database snapshot."""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


class NotesDBError(Exception):
    """Base exception for Notes database errors."""
    pass


class DatabaseNotFoundError(NotesDBError):
    """Notes database file not found at an explicitly supplied path."""
    pass


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Get a read-only connection to a Notes database file."""
    try:
        conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    except sqlite3.Error as e:
        raise NotesDBError(f"Failed to open database: {e}") from e
    conn.row_factory = sqlite3.Row
    logger.debug("Opened read-only connection to %s", db_path)
    return conn


def query(conn: sqlite3.Connection, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
    """Run a query and return all rows.

    Any SQLite failure is re-raised as NotesDBError so callers only deal
    with the package's own exception types.
    """
    try:
        return conn.execute(sql, tuple(params)).fetchall()
    except sqlite3.Error as e:
        raise NotesDBError(f"Database error: {e}") from e


def query_one(conn: sqlite3.Connection, sql: str, params: tuple | list = ()) -> sqlite3.Row | None:
    """Run a query and return the first row, if any."""
    rows = query(conn, sql, params)
    return rows[0] if rows else None


def table_columns(conn: sqlite3.Connection, table: str) -> frozenset[str]:
    """Return the upper-cased column names present on a table."""
    rows = query(conn, f"PRAGMA table_info({table})")
    return frozenset(row["name"].upper() for row in rows)


def placeholders(count: int) -> str:
    return ",".join("?" * count)
