"""
SQLite connection management for the reference store implementation.

``get_connection()`` is a context manager that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Enables WAL journal mode so batch generation can read while the
    service writes relationships.
  - Sets a busy timeout to ride out lock contention.
  - Uses the ``sqlite3.Row`` factory so repositories can read columns by name.
  - Commits on clean exit, rolls back on exception.

Usage::

    from event_matchmaker.db.connection import get_connection

    with get_connection("data/db/event_matchmaker.db") as conn:
        RelationshipRepository(conn).insert(relationship)

Connections are not shared across threads.  The recommendation generator
performs every store call on the thread that opened the connection and only
fans out the pure scoring step.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


def open_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> sqlite3.Connection:
    """Open and configure a connection without managing its lifetime.

    Args:
        db_path: Path to the SQLite file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode (ignored for in-memory databases).
        busy_timeout_ms: Milliseconds to wait on a locked database.

    Returns:
        A configured ``sqlite3.Connection``; the caller must close it.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    # Pragmas must precede any DML/DDL.
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
    if wal_mode and db_path != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")

    logger.debug("Opened SQLite connection to %s", db_path)
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The connection is committed on clean exit and rolled back on exception.
    Parent directories of ``db_path`` are created if missing.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    conn = open_connection(db_path, wal_mode=wal_mode, busy_timeout_ms=busy_timeout_ms)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
