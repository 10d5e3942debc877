"""Tests for events.py: delivery order, failure isolation, unsubscribe."""

from __future__ import annotations

from event_matchmaker.events import EventBus, RelationshipCreated, RelationshipStatusChanged
from event_matchmaker.taxonomy.lead_taxonomy import RelationshipStatus


def _created(fixed_clock) -> RelationshipCreated:
    return RelationshipCreated(
        relationship_id="rel-1", provider_id="exh-1", seeker_id="vis-1",
        score=0.7, occurred_at=fixed_clock(),
    )


class TestEventBus:
    def test_delivery_in_registration_order(self, fixed_clock):
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(RelationshipCreated, lambda e: seen.append("first"))
        bus.subscribe(RelationshipCreated, lambda e: seen.append("second"))

        assert bus.publish(_created(fixed_clock)) == 0
        assert seen == ["first", "second"]

    def test_only_matching_type_delivered(self, fixed_clock):
        bus = EventBus()
        seen: list = []
        bus.subscribe(RelationshipStatusChanged, seen.append)
        bus.publish(_created(fixed_clock))
        assert seen == []

    def test_failing_subscriber_isolated(self, fixed_clock):
        bus = EventBus()
        seen: list = []

        def broken(event):
            raise RuntimeError("webhook down")

        bus.subscribe(RelationshipCreated, broken)
        bus.subscribe(RelationshipCreated, seen.append)

        assert bus.publish(_created(fixed_clock)) == 1
        assert len(seen) == 1

    def test_unsubscribe(self, fixed_clock):
        bus = EventBus()
        seen: list = []
        unsubscribe = bus.subscribe(RelationshipStatusChanged, seen.append)
        unsubscribe()
        unsubscribe()
        bus.publish(RelationshipStatusChanged(
            relationship_id="rel-1", old_status=RelationshipStatus.NEW,
            new_status=RelationshipStatus.CONTACTED, occurred_at=fixed_clock(),
        ))
        assert seen == []

    def test_buses_are_independent(self, fixed_clock):
        a, b = EventBus(), EventBus()
        seen: list = []
        a.subscribe(RelationshipCreated, seen.append)
        b.publish(_created(fixed_clock))
        assert seen == []
