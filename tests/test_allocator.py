"""Tests for global allocation across open events."""

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlmodel import Session

from app.matching import allocator as allocator_module
from app.matching.allocator import GlobalAllocator, allocation_priority
from app.matching.errors import AllocationInProgressError
from app.matching.orchestrator import MatchingOrchestrator
from app.matching.outcome import NO_CONFLICT_FREE_REASON, OutcomeCode
from app.matching.slots import SlotKey
from app.matching.stores import SqlAvailabilityStore, SqlEventStore
from app.models import Event, EventStatus, Unit, UnitRestriction

D1 = date(2025, 6, 2)
D2 = date(2025, 6, 3)
EARLY = datetime(2025, 5, 1, tzinfo=UTC)


@pytest.fixture(name="allocator")
def allocator_fixture(session: Session, orchestrator) -> GlobalAllocator:
    return GlobalAllocator(orchestrator, SqlEventStore(session))


def by_event(outcomes):
    return {outcome.event_id: outcome for outcome in outcomes}


class SingleCheckFirstStore(SqlEventStore):
    """Event store where a single-event check commits one event's match first."""

    def __init__(self, session, raced_event_id):
        super().__init__(session)
        self.raced_event_id = raced_event_id

    def update_status(self, event_id, status, **kwargs):
        if event_id == self.raced_event_id and status == EventStatus.MATCHED:
            super().update_status(event_id, status, **kwargs)
        return super().update_status(event_id, status, **kwargs)


class TestAllocationPriority:
    """Tests for the allocation order."""

    def test_deadline_then_creation_then_id(self):
        base = {"name": "x", "creator_id": "a", "period_start": D1, "period_end": D2}
        no_deadline = Event(**base, deadline=None, created_at=EARLY)
        late = Event(**base, deadline=EARLY + timedelta(days=9), created_at=EARLY)
        soon_new = Event(**base, deadline=EARLY + timedelta(days=3), created_at=EARLY + timedelta(hours=1))
        soon_old = Event(**base, deadline=EARLY + timedelta(days=3), created_at=EARLY)

        ordered = sorted([no_deadline, late, soon_new, soon_old], key=allocation_priority)
        assert ordered == [soon_old, soon_new, late, no_deadline]

    def test_naive_and_aware_datetimes_compare(self):
        base = {"name": "x", "creator_id": "a", "period_start": D1, "period_end": D2}
        naive = Event(**base, deadline=datetime(2025, 6, 1), created_at=datetime(2025, 5, 1))
        aware = Event(**base, deadline=datetime(2025, 6, 2, tzinfo=UTC), created_at=EARLY)

        assert sorted([aware, naive], key=allocation_priority) == [naive, aware]


class TestGlobalAllocator:
    """Tests for GlobalAllocator passes."""

    def test_earlier_event_wins_contested_unit(self, allocator, make_event, free, session):
        first = make_event(
            participants=["alice", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=None,
            created_at=EARLY,
        )
        second = make_event(
            creator_id="carol",
            participants=["carol", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=None,
            created_at=EARLY + timedelta(hours=1),
        )
        free(["alice", "bob", "carol"], D1)

        outcomes = by_event(allocator.run())

        assert outcomes[first.id].is_matched
        assert outcomes[first.id].matched_units == [SlotKey(D1, Unit.FIRST_HALF)]
        assert not outcomes[second.id].is_matched
        assert outcomes[second.id].code == OutcomeCode.NO_CONFLICT_FREE_UNITS
        assert outcomes[second.id].reason == NO_CONFLICT_FREE_REASON

        session.refresh(second)
        assert second.status == EventStatus.OPEN

    def test_concurrently_matched_event_keeps_its_units(
        self, session, make_event, free, clock, notifier
    ):
        first = make_event(
            participants=["alice", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=None,
            created_at=EARLY,
        )
        second = make_event(
            creator_id="carol",
            participants=["carol", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=None,
            created_at=EARLY + timedelta(hours=1),
        )
        free(["alice", "bob", "carol"], D1)
        orchestrator = MatchingOrchestrator(
            SingleCheckFirstStore(session, first.id),
            SqlAvailabilityStore(session),
            notifier,
            clock=clock,
        )

        outcomes = by_event(GlobalAllocator(orchestrator, SqlEventStore(session)).run())

        assert outcomes[first.id].code == OutcomeCode.EVENT_ALREADY_RESOLVED
        assert outcomes[first.id].is_matched
        assert outcomes[first.id].matched_units == [SlotKey(D1, Unit.FIRST_HALF)]
        assert outcomes[second.id].code == OutcomeCode.NO_CONFLICT_FREE_UNITS

        session.refresh(second)
        assert second.status == EventStatus.OPEN

    def test_no_double_booking(self, allocator, make_event, free):
        for hour in range(3):
            make_event(
                creator_id=f"host{hour}",
                participants=[f"host{hour}", "bob"],
                deadline=None,
                created_at=EARLY + timedelta(hours=hour),
            )
        free(["host0", "host1", "host2", "bob"], [D1, D2])

        outcomes = allocator.run()
        bob_slots = [
            unit
            for outcome in outcomes
            if outcome.is_matched
            for unit in outcome.matched_units
        ]

        assert sum(1 for o in outcomes if o.is_matched) == 3
        assert len(bob_slots) == len(set(bob_slots)) == 3

    def test_specific_reason_without_conflicts(self, allocator, make_event, free):
        event = make_event()
        free("alice", D1)

        outcomes = by_event(allocator.run())

        assert outcomes[event.id].code == OutcomeCode.NO_COMMON_AVAILABILITY

    def test_deadline_orders_before_creation(self, allocator, make_event, free, clock):
        older = make_event(
            participants=["alice", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=clock() + timedelta(days=5),
            created_at=EARLY,
        )
        urgent = make_event(
            creator_id="carol",
            participants=["carol", "bob"],
            unit_restriction=UnitRestriction.FIRST_HALF_ONLY,
            deadline=clock() + timedelta(days=1),
            created_at=EARLY + timedelta(days=1),
        )
        free(["alice", "bob", "carol"], D1)

        outcomes = by_event(allocator.run())

        assert outcomes[urgent.id].is_matched
        assert outcomes[older.id].code == OutcomeCode.NO_CONFLICT_FREE_UNITS

    def test_overdue_events_expire_during_pass(self, allocator, make_event, free, clock):
        event = make_event(deadline=clock() - timedelta(minutes=5))
        free(["alice", "bob"], D1)

        outcomes = by_event(allocator.run())

        assert outcomes[event.id].code == OutcomeCode.DEADLINE_PASSED

    def test_only_open_events_visited(self, allocator, make_event):
        make_event(status=EventStatus.CANCELLED)
        assert allocator.run() == []

    def test_concurrent_pass_rejected(self, allocator):
        assert allocator_module._allocation_lock.acquire(blocking=False)
        try:
            with pytest.raises(AllocationInProgressError):
                allocator.run()
        finally:
            allocator_module._allocation_lock.release()

    def test_lock_released_after_pass(self, allocator):
        allocator.run()
        assert not allocator_module._allocation_lock.locked()
