"""
Tests for the SQLite repositories.

What we test
------------
RelationshipRepository:
  - insert/get round trip; exists() and find_pair() ignore pair order.
  - A second insert for the same unordered pair raises
    DuplicateRelationshipError carrying the winning record's id.
  - update_status() and list_filtered().

RecommendationRepository:
  - mark_used() links the relationship; list_for_subject() hides used ones.

HistoryRepository:
  - Windowed counts, shared sessions and activity since a cutoff.

ProfileRepository:
  - upsert/find round trip through the entity gateway; malformed rows are
    treated as missing, but a malformed email only drops the email.

NotificationRepository:
  - append/mark_read; delete_expired() removes records at or past expiry.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from event_matchmaker.db.repositories.history_repo import HistoryRepository
from event_matchmaker.db.repositories.notification_repo import NotificationRepository
from event_matchmaker.db.repositories.profile_repo import ProfileRepository
from event_matchmaker.db.repositories.recommendation_repo import RecommendationRepository
from event_matchmaker.db.repositories.relationship_repo import RelationshipRepository
from event_matchmaker.errors import DuplicateRelationshipError, ErrorKind
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.models.notification import NotificationRecord
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import Relationship
from event_matchmaker.taxonomy.lead_taxonomy import (
    ConfidenceBucket,
    NotificationType,
    Priority,
    RelationshipSource,
    RelationshipStatus,
)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def make_relationship(fixed_clock):
    def _make(rel_id: str, provider_id: str, seeker_id: str, **overrides) -> Relationship:
        now = fixed_clock()
        data = dict(
            relationship_id=rel_id,
            provider_id=provider_id,
            seeker_id=seeker_id,
            score=0.7,
            priority=Priority.MEDIUM,
            created_at=now,
            updated_at=now,
        )
        data.update(overrides)
        return Relationship(**data)

    return _make


class TestRelationshipRepository:
    def test_round_trip(self, in_memory_db, make_relationship):
        repo = RelationshipRepository(in_memory_db)
        rel = make_relationship("rel-1", "exh-1", "vis-1", tags=["booth-12"], notes="met at booth")
        repo.insert(rel)

        loaded = repo.get_by_id("rel-1")
        assert loaded == rel
        assert repo.exists("vis-1", "exh-1")
        assert repo.find_pair("vis-1", "exh-1").relationship_id == "rel-1"

    def test_duplicate_pair_rejected(self, in_memory_db, make_relationship):
        repo = RelationshipRepository(in_memory_db)
        repo.insert(make_relationship("rel-1", "exh-1", "vis-1"))

        with pytest.raises(DuplicateRelationshipError) as exc_info:
            repo.insert(make_relationship("rel-2", "vis-1", "exh-1"))
        assert exc_info.value.existing_id == "rel-1"
        assert exc_info.value.pair_key == "exh-1|vis-1"
        assert exc_info.value.kind == ErrorKind.DUPLICATE
        assert repo.list_filtered() == [repo.get_by_id("rel-1")]

    def test_update_status(self, in_memory_db, make_relationship, fixed_clock):
        repo = RelationshipRepository(in_memory_db)
        repo.insert(make_relationship("rel-1", "exh-1", "vis-1"))
        later = fixed_clock() + timedelta(hours=1)

        assert repo.update_status("rel-1", RelationshipStatus.CONTACTED, later, notes="called")
        updated = repo.get_by_id("rel-1")
        assert updated.status == RelationshipStatus.CONTACTED
        assert updated.notes == "called"
        assert updated.updated_at == later
        assert not repo.update_status("missing", RelationshipStatus.CLOSED, later)

    def test_list_filtered(self, in_memory_db, make_relationship):
        repo = RelationshipRepository(in_memory_db)
        repo.insert(make_relationship("rel-1", "exh-1", "vis-1", priority=Priority.HIGH, score=0.9))
        repo.insert(make_relationship("rel-2", "exh-1", "vis-2", source=RelationshipSource.SCAN))
        repo.insert(make_relationship("rel-3", "exh-2", "vis-1"))

        assert {r.relationship_id for r in repo.list_filtered(provider_id="exh-1")} == {"rel-1", "rel-2"}
        assert [r.relationship_id for r in repo.list_filtered(priority=Priority.HIGH)] == ["rel-1"]
        assert [r.relationship_id for r in repo.list_filtered(source=RelationshipSource.SCAN)] == ["rel-2"]
        assert len(repo.list_filtered(limit=2)) == 2


class TestRecommendationRepository:
    def _rec(self, rec_id: str, seeker_id: str, score: float, created_at) -> Recommendation:
        return Recommendation(
            recommendation_id=rec_id,
            provider_id="exh-1",
            seeker_id=seeker_id,
            score=score,
            confidence=ConfidenceBucket.MEDIUM,
            reasons=["Excellent business compatibility"],
            created_at=created_at,
        )

    def test_mark_used(self, in_memory_db, make_relationship, fixed_clock):
        relationships = RelationshipRepository(in_memory_db)
        repo = RecommendationRepository(in_memory_db)
        repo.insert(self._rec("rec-1", "vis-1", 0.7, fixed_clock()))
        repo.insert(self._rec("rec-2", "vis-2", 0.65, fixed_clock()))
        relationships.insert(make_relationship("rel-1", "exh-1", "vis-1"))

        assert repo.mark_used("rec-1", "rel-1")
        used = repo.get_by_id("rec-1")
        assert used.used and used.converted_relationship_id == "rel-1"
        assert [r.recommendation_id for r in repo.list_for_subject("exh-1")] == ["rec-2"]
        assert not repo.mark_used("missing", "rel-1")


class TestHistoryRepository:
    def test_counts_and_activity(self, in_memory_db, fixed_clock):
        repo = HistoryRepository(in_memory_db)
        now = fixed_clock()
        repo.record_checkin("exh-1", now - timedelta(days=2))
        repo.record_checkin("exh-1", now - timedelta(days=40))
        repo.record_profile_view("exh-1", now - timedelta(hours=3))
        repo.record_session_attendance("exh-1", "keynote", now - timedelta(hours=1))
        repo.record_session_attendance("vis-1", "keynote", now - timedelta(hours=1))
        repo.record_session_attendance("vis-1", "panel", now - timedelta(hours=2))

        since = now - timedelta(days=30)
        assert repo.count_checkins("exh-1", since) == 1
        assert repo.count_profile_views("exh-1", since) == 1
        assert repo.count_shared_sessions("exh-1", "vis-1", since) == 1
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        assert repo.was_active_since("vis-1", today)
        assert not repo.was_active_since("vis-2", today)


class TestProfileRepository:
    def test_round_trip_through_gateway(self, in_memory_db, sample_exhibitor):
        repo = ProfileRepository(in_memory_db)
        repo.upsert(sample_exhibitor)
        gateway = EntityGateway(repo)

        assert gateway.get_profile("exh-1") == sample_exhibitor
        assert gateway.get_profile("nobody") is None
        assert repo.count_by_industry("Technology", exclude_ids=("exh-1",)) == 0

    def test_malformed_row_treated_as_missing(self, in_memory_db):
        in_memory_db.execute(
            "INSERT INTO profiles (profile_id, display_name, category, timezone_offset_hours) "
            "VALUES ('bad-1', 'Broken', 'exhibitor', 99);"
        )
        gateway = EntityGateway(ProfileRepository(in_memory_db))
        assert gateway.get_profile("bad-1") is None
        assert gateway.get_profile_or_placeholder("bad-1").is_placeholder

    def test_malformed_email_keeps_profile(self, in_memory_db):
        in_memory_db.execute(
            "INSERT INTO profiles (profile_id, display_name, category, email) "
            "VALUES ('vis-9', 'Nadia', 'visitor', 'n/a');"
        )
        gateway = EntityGateway(ProfileRepository(in_memory_db))
        seekers = gateway.find_seekers()
        assert [p.profile_id for p in seekers] == ["vis-9"]
        assert seekers[0].contact.email is None


class TestNotificationRepository:
    def _record(self, fixed_clock, hours: int) -> NotificationRecord:
        return NotificationRecord(
            recipient_id="exh-1",
            type=NotificationType.NEW_LEAD,
            title="New Lead Available",
            message="New lead: Val Visitor (65% match)",
            payload={"score": 0.65},
            created_at=fixed_clock(),
            expires_at=fixed_clock() + timedelta(hours=hours),
        )

    def test_append_and_mark_read(self, in_memory_db, fixed_clock):
        repo = NotificationRepository(in_memory_db)
        notification_id = repo.append(self._record(fixed_clock, 72))

        assert repo.list_for_recipient("exh-1")[0].payload == {"score": 0.65}
        assert repo.mark_read(notification_id)
        assert repo.list_for_recipient("exh-1", unread_only=True) == []
        assert not repo.mark_read(notification_id + 100)

    def test_delete_expired(self, in_memory_db, fixed_clock):
        repo = NotificationRepository(in_memory_db)
        repo.append(self._record(fixed_clock, 12))
        repo.append(self._record(fixed_clock, 72))

        assert repo.delete_expired(fixed_clock() + timedelta(hours=12)) == 1
        assert len(repo.list_all()) == 1
