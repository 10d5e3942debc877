"""
SQLite DDL for the reference stores.

Tables
------
profiles         Entity store (owned by registration; read-only to the core).
relationships    Relationship store.  ``pair_key`` holds the canonical
                 unordered pair (see ``PairKey.canonical``) and carries the
                 UNIQUE constraint that is the authoritative duplicate guard.
recommendations  Recommendation store.
activity_events  History store: check-ins, profile views, session attendance.
notifications    Notification outbox.

Timestamps are ISO-8601 UTC strings with microseconds, so lexical order is
chronological order and range filters can compare strings directly.

All statements use ``IF NOT EXISTS``; ``apply_schema`` is idempotent.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_DDL_PROFILES = """
CREATE TABLE IF NOT EXISTS profiles (
    profile_id            TEXT    NOT NULL PRIMARY KEY,
    display_name          TEXT    NOT NULL DEFAULT '',
    organization          TEXT,
    category              TEXT    CHECK (category IN
                              ('exhibitor', 'visitor', 'hosted_buyer', 'vip', 'organizer')),
    industry              TEXT    COLLATE NOCASE,
    organization_size     TEXT,
    interests             TEXT,
    budget                TEXT,
    position              TEXT,
    biography             TEXT,
    sponsor_tier          TEXT    CHECK (sponsor_tier IN ('bronze', 'silver', 'gold', 'platinum')),
    timezone_offset_hours REAL,
    email_notifications   INTEGER NOT NULL DEFAULT 1,
    email                 TEXT,
    phone                 TEXT,
    linkedin              TEXT,
    twitter               TEXT,
    website               TEXT,
    last_active_at        TEXT,
    created_at            TEXT,
    updated_at            TEXT
);

CREATE INDEX IF NOT EXISTS idx_profiles_category     ON profiles(category);
CREATE INDEX IF NOT EXISTS idx_profiles_organization ON profiles(organization COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_profiles_industry     ON profiles(industry);
"""

_DDL_RELATIONSHIPS = """
CREATE TABLE IF NOT EXISTS relationships (
    relationship_id TEXT    NOT NULL PRIMARY KEY,
    provider_id     TEXT    NOT NULL,
    seeker_id       TEXT    NOT NULL,
    pair_key        TEXT    NOT NULL,
    score           REAL    NOT NULL CHECK (score >= 0.0 AND score <= 1.0),
    status          TEXT    NOT NULL DEFAULT 'new'
                        CHECK (status IN ('new', 'contacted', 'qualified', 'converted', 'closed')),
    priority        TEXT    NOT NULL CHECK (priority IN ('low', 'medium', 'high')),
    source          TEXT    NOT NULL CHECK (source IN ('scan', 'manual', 'recommendation')),
    tags            TEXT    NOT NULL DEFAULT '[]',
    notes           TEXT,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL,
    CHECK (provider_id <> seeker_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_relationships_pair ON relationships(pair_key);
CREATE INDEX IF NOT EXISTS idx_relationships_provider   ON relationships(provider_id, created_at);
CREATE INDEX IF NOT EXISTS idx_relationships_seeker     ON relationships(seeker_id, created_at);
CREATE INDEX IF NOT EXISTS idx_relationships_created    ON relationships(created_at);
"""

_DDL_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS recommendations (
    recommendation_id         TEXT    NOT NULL PRIMARY KEY,
    provider_id               TEXT    NOT NULL,
    seeker_id                 TEXT    NOT NULL,
    score                     REAL    NOT NULL CHECK (score >= 0.0 AND score <= 1.0),
    confidence                TEXT    NOT NULL CHECK (confidence IN ('high', 'medium', 'low')),
    reasons                   TEXT    NOT NULL DEFAULT '[]',
    used                      INTEGER NOT NULL DEFAULT 0,
    converted_relationship_id TEXT    REFERENCES relationships(relationship_id),
    created_at                TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_recommendations_provider ON recommendations(provider_id, score DESC);
CREATE INDEX IF NOT EXISTS idx_recommendations_seeker   ON recommendations(seeker_id, score DESC);
"""

_DDL_ACTIVITY_EVENTS = """
CREATE TABLE IF NOT EXISTS activity_events (
    event_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    profile_id  TEXT    NOT NULL,
    event_type  TEXT    NOT NULL CHECK (event_type IN ('checkin', 'profile_view', 'session_attendance')),
    session_id  TEXT,
    occurred_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activity_profile_type_time
    ON activity_events(profile_id, event_type, occurred_at);
CREATE INDEX IF NOT EXISTS idx_activity_session
    ON activity_events(session_id)
    WHERE session_id IS NOT NULL;
"""

_DDL_NOTIFICATIONS = """
CREATE TABLE IF NOT EXISTS notifications (
    notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipient_id    TEXT    NOT NULL,
    type            TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    message         TEXT    NOT NULL,
    payload         TEXT    NOT NULL DEFAULT '{}',
    priority        TEXT    NOT NULL CHECK (priority IN ('low', 'medium', 'high', 'critical')),
    read            INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL,
    expires_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_notifications_recipient ON notifications(recipient_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_notifications_expiry
    ON notifications(expires_at)
    WHERE expires_at IS NOT NULL;
"""

_ALL_DDL: list[str] = [
    _DDL_PROFILES,
    _DDL_RELATIONSHIPS,
    _DDL_RECOMMENDATIONS,
    _DDL_ACTIVITY_EVENTS,
    _DDL_NOTIFICATIONS,
]

ALL_TABLE_NAMES = [
    "profiles",
    "relationships",
    "recommendations",
    "activity_events",
    "notifications",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — every statement carries an ``IF NOT EXISTS`` guard.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return the index names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
