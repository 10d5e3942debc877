"""
Base repository: shared SQLite execution helpers with error translation.

Every repository receives a ``sqlite3.Connection`` at construction time;
the caller owns its lifetime (typically via ``get_connection()``).

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak pydantic models, not raw rows (the profile
    repository is the exception: it serves raw rows to the entity gateway,
    which owns validation).
  - ``sqlite3.Error`` never leaks out of a repository.  Constraint failures
    become ``IntegrityViolation``; everything else becomes ``StoreError``.
    Both keep the original exception as ``__cause__``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional

from event_matchmaker.errors import IntegrityViolation, StoreError

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    table: str = ""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Execute one statement, translating driver errors.

        Raises:
            IntegrityViolation: On UNIQUE / CHECK / FK constraint failures.
            StoreError: On any other SQLite error.
        """
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), params)
        try:
            return self.conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            raise IntegrityViolation(f"{self.table or 'store'}: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"{self.table or 'store'}: {exc}") from exc

    def executemany(self, sql: str, params_list: list[Params]) -> sqlite3.Cursor:
        logger.debug("SQL (many): %s | count: %d", " ".join(sql.split()), len(params_list))
        try:
            return self.conn.executemany(sql, params_list)
        except sqlite3.IntegrityError as exc:
            raise IntegrityViolation(f"{self.table or 'store'}: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"{self.table or 'store'}: {exc}") from exc

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: Params = (), default: Any = 0) -> Any:
        """Return the first column of the first row, or ``default``."""
        row = self.fetchone(sql, params)
        if row is None or row[0] is None:
            return default
        return row[0]

    def last_insert_rowid(self) -> int:
        return int(self.scalar("SELECT last_insert_rowid();"))


def dump_json(value: Any) -> str:
    """Serialize list/dict columns (tags, reasons, payload)."""
    return json.dumps(value, sort_keys=True, default=str)


def load_json(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    return json.loads(value)
