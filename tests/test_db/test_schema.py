"""Tests for SQLite schema and migrations: idempotency, tables, pair uniqueness index."""

from __future__ import annotations

import sqlite3

import pytest

from event_matchmaker.db.connection import get_connection
from event_matchmaker.db.migrations import MIGRATIONS, run_migrations
from event_matchmaker.db.schema import (
    ALL_TABLE_NAMES,
    apply_schema,
    get_existing_indexes,
    get_existing_tables,
)


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found in database. "
                f"Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        assert len(get_existing_tables(in_memory_db)) >= len(ALL_TABLE_NAMES)

    def test_key_indexes_created(self, in_memory_db):
        indexes = get_existing_indexes(in_memory_db)
        for idx in ("uq_relationships_pair", "idx_relationships_provider", "idx_notifications_recipient"):
            assert idx in indexes, f"Expected index '{idx}' not found. Found: {indexes}"

    def test_self_pair_rejected_by_check(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO relationships (relationship_id, provider_id, seeker_id, pair_key,
                    score, priority, source, created_at, updated_at)
                VALUES ('r', 'a', 'a', 'a|a', 0.5, 'low', 'manual', 'x', 'x');
                """
            )


class TestConnection:
    def test_fk_enforcement_is_on(self, tmp_path):
        with get_connection(str(tmp_path / "db" / "test.db")) as conn:
            row = conn.execute("PRAGMA foreign_keys;").fetchone()
            assert row[0] == 1

    def test_rollback_on_exception(self, tmp_path):
        path = str(tmp_path / "test.db")
        with get_connection(path) as conn:
            apply_schema(conn)
        with pytest.raises(RuntimeError):
            with get_connection(path) as conn:
                conn.execute(
                    "INSERT INTO activity_events (profile_id, event_type, occurred_at) "
                    "VALUES ('p', 'checkin', '2025-01-01');"
                )
                raise RuntimeError("abort")
        with get_connection(path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM activity_events;").fetchone()[0] == 0


class TestMigrations:
    def test_fresh_database(self, in_memory_db):
        assert run_migrations(in_memory_db) == len(MIGRATIONS)
        assert run_migrations(in_memory_db) == 0

    def test_legacy_relationships_backfilled(self):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        conn.execute("CREATE TABLE profiles (profile_id TEXT PRIMARY KEY);")
        conn.execute(
            "CREATE TABLE relationships (relationship_id TEXT PRIMARY KEY, "
            "provider_id TEXT, seeker_id TEXT);"
        )
        conn.execute("INSERT INTO relationships VALUES ('r1', 'vis-1', 'exh-1');")

        run_migrations(conn)

        row = conn.execute("SELECT pair_key FROM relationships;").fetchone()
        assert row["pair_key"] == "exh-1|vis-1"
        profile_columns = {r[1] for r in conn.execute("PRAGMA table_info(profiles);")}
        assert "email_notifications" in profile_columns
        conn.close()

    def test_reversed_legacy_duplicates_fail_loudly(self):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        conn.execute("CREATE TABLE profiles (profile_id TEXT PRIMARY KEY);")
        conn.execute(
            "CREATE TABLE relationships (relationship_id TEXT PRIMARY KEY, "
            "provider_id TEXT, seeker_id TEXT);"
        )
        conn.execute("INSERT INTO relationships VALUES ('r1', 'exh-1', 'vis-1');")
        conn.execute("INSERT INTO relationships VALUES ('r2', 'vis-1', 'exh-1');")
        conn.commit()

        with pytest.raises(sqlite3.IntegrityError):
            run_migrations(conn)
        conn.close()
