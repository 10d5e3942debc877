"""
Shared pytest fixtures for the Event Matchmaker test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``fixed_clock``: A deterministic UTC clock shared by every component.
  - Sample profiles (exhibitor, visitor, hosted buyer) and a seeding helper.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest

from event_matchmaker.db.repositories.profile_repo import ProfileRepository
from event_matchmaker.db.schema import apply_schema
from event_matchmaker.models.profile import ContactInfo, Profile
from event_matchmaker.taxonomy.profile_taxonomy import ProfileCategory

FIXED_NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


# ── Sample domain object factories ────────────────────────────────────────────

def make_exhibitor(profile_id: str = "exh-1", **overrides) -> Profile:
    data = dict(
        profile_id=profile_id,
        display_name="Erin Exhibitor",
        organization="Acme Systems",
        category=ProfileCategory.EXHIBITOR,
        industry="Technology",
        organization_size="51-200",
        position="Sales Director",
        contact=ContactInfo(email=f"{profile_id}@acme.example"),
    )
    data.update(overrides)
    return Profile(**data)


def make_visitor(profile_id: str = "vis-1", **overrides) -> Profile:
    data = dict(
        profile_id=profile_id,
        display_name="Val Visitor",
        organization="Globex",
        category=ProfileCategory.VISITOR,
        industry="Retail",
        organization_size="51-200",
        interests="technology, innovation",
        budget="50k-100k",
        position="Head of IT",
        contact=ContactInfo(email=f"{profile_id}@globex.example"),
    )
    data.update(overrides)
    return Profile(**data)


@pytest.fixture
def sample_exhibitor() -> Profile:
    """An exhibitor in the Technology industry."""
    return make_exhibitor()


@pytest.fixture
def sample_visitor() -> Profile:
    """A visitor interested in "technology, innovation"."""
    return make_visitor()


@pytest.fixture
def sample_hosted_buyer() -> Profile:
    return make_visitor(
        "buyer-1",
        display_name="Hana Buyer",
        category=ProfileCategory.HOSTED_BUYER,
    )


@pytest.fixture
def seed_profiles(in_memory_db) -> Callable[..., None]:
    """Return a helper that upserts profiles into the in-memory store."""
    repo = ProfileRepository(in_memory_db)

    def _seed(*profiles: Profile) -> None:
        for profile in profiles:
            repo.upsert(profile)
        in_memory_db.commit()

    return _seed


@pytest.fixture
def exhibitor_factory() -> Callable[..., Profile]:
    return make_exhibitor


@pytest.fixture
def visitor_factory() -> Callable[..., Profile]:
    return make_visitor
