"""
Sequential schema migrations.

Not a migration framework (no down migrations).  ``schema_versions``
records which migrations ran; ``run_migrations()`` applies the rest in
``MIGRATIONS`` insertion order.

``apply_schema()`` creates current-shape tables for fresh databases, so
each migration guards itself with ``PRAGMA table_info`` / ``IF NOT EXISTS``
and is a no-op there.  Migrations exist for databases created by earlier
releases.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_versions`` tracking table if it does not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_versions (
            version_id  TEXT    NOT NULL PRIMARY KEY,
            applied_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            description TEXT
        );
    """)
    conn.commit()


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT version_id FROM schema_versions;").fetchall()
    return {row["version_id"] for row in rows}


def _mark_applied(conn: sqlite3.Connection, version_id: str, description: str) -> None:
    conn.execute(
        "INSERT INTO schema_versions(version_id, description) VALUES (?, ?);",
        (version_id, description),
    )
    conn.commit()


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}


# ── Migration functions ────────────────────────────────────────────────────────

def migration_0001_baseline(conn: sqlite3.Connection) -> None:
    """Anchor the version history; the baseline tables come from apply_schema()."""


def migration_0002_relationship_pair_key(conn: sqlite3.Connection) -> None:
    """Add the canonical ``pair_key`` column and its unique index.

    Early databases keyed relationships on ``(provider_id, seeker_id)`` only,
    which let a reversed pair slip past the guard.  Backfill fails loudly
    (IntegrityError) if such reversed duplicates exist; they must be merged
    by hand before the migration can apply.
    """
    if "pair_key" not in _columns(conn, "relationships"):
        conn.execute("ALTER TABLE relationships ADD COLUMN pair_key TEXT;")
        conn.execute("""
            UPDATE relationships
               SET pair_key = CASE WHEN provider_id < seeker_id
                                   THEN provider_id || '|' || seeker_id
                                   ELSE seeker_id || '|' || provider_id END
             WHERE pair_key IS NULL;
        """)
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_relationships_pair ON relationships(pair_key);"
    )
    conn.commit()


def migration_0003_profile_email_opt_out(conn: sqlite3.Connection) -> None:
    """Add ``profiles.email_notifications`` (escalation opt-out flag)."""
    if "email_notifications" not in _columns(conn, "profiles"):
        conn.execute(
            "ALTER TABLE profiles ADD COLUMN email_notifications INTEGER NOT NULL DEFAULT 1;"
        )
    conn.commit()


# ── Registry ──────────────────────────────────────────────────────────────────

MIGRATIONS: dict[str, tuple[MigrationFn, str]] = {
    "0001_baseline": (
        migration_0001_baseline,
        "Baseline: schema_versions table created",
    ),
    "0002_relationship_pair_key": (
        migration_0002_relationship_pair_key,
        "Add relationships.pair_key with unique index",
    ),
    "0003_profile_email_opt_out": (
        migration_0003_profile_email_opt_out,
        "Add profiles.email_notifications",
    ),
}


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations.

    Args:
        conn: An open ``sqlite3.Connection`` on a database with the schema applied.

    Returns:
        Number of migrations applied in this call.
    """
    _ensure_version_table(conn)
    applied = _get_applied_versions(conn)

    count = 0
    for version_id, (fn, description) in MIGRATIONS.items():
        if version_id in applied:
            logger.debug("Migration %s already applied; skipping.", version_id)
            continue

        logger.info("Applying migration %s: %s", version_id, description)
        try:
            fn(conn)
            _mark_applied(conn, version_id, description)
            count += 1
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Migration %s FAILED: %s", version_id, exc)
            raise

    if count:
        logger.info("Applied %d migration(s).", count)
    else:
        logger.debug("No pending migrations.")

    return count
