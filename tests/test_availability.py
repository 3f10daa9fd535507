"""Tests for the availability index and slot intersection."""

import logging
from datetime import date, timedelta

from app.matching.availability import AvailabilityIndex
from app.matching.intersector import SlotIntersector
from app.matching.slots import SlotKey
from app.models import AvailabilityRecord, Unit, UnitRestriction

D1 = date(2025, 6, 2)
D2 = date(2025, 6, 3)
D3 = date(2025, 6, 4)


class FakeAvailabilityStore:
    """In-memory availability store counting fetches."""

    def __init__(self, records: list[AvailabilityRecord]):
        self.records = records
        self.fetches = []

    def get_availability(self, user_id, start, end):
        self.fetches.append(user_id)
        return [r for r in self.records if r.user_id == user_id and start <= r.day <= end]


def record(user_id: str, day: date, first_half: bool = True, second_half: bool = True):
    return AvailabilityRecord(
        user_id=user_id, day=day, first_half=first_half, second_half=second_half
    )


class TestAvailabilityIndex:
    """Tests for AvailabilityIndex."""

    def test_missing_record_is_busy(self):
        store = FakeAvailabilityStore([record("alice", D1)])
        index = AvailabilityIndex.load(store, ["alice"], D1, D3, max_days=100)

        assert index.is_free("alice", D1, Unit.FIRST_HALF)
        assert not index.is_free("alice", D2, Unit.FIRST_HALF)
        assert not index.is_free("bob", D1, Unit.FIRST_HALF)

    def test_per_unit_flags(self):
        store = FakeAvailabilityStore([record("alice", D1, first_half=False, second_half=True)])
        index = AvailabilityIndex.load(store, ["alice"], D1, D1, max_days=100)

        assert not index.is_free("alice", D1, Unit.FIRST_HALF)
        assert index.is_free("alice", D1, Unit.SECOND_HALF)

    def test_duplicate_participants_fetched_once(self):
        store = FakeAvailabilityStore([])
        AvailabilityIndex.load(store, ["alice", "bob", "alice"], D1, D3, max_days=100)
        assert store.fetches == ["alice", "bob"]

    def test_period_is_capped(self, caplog):
        start = date(2025, 1, 1)
        store = FakeAvailabilityStore([])
        with caplog.at_level(logging.WARNING):
            index = AvailabilityIndex.load(
                store, ["alice"], start, start + timedelta(days=365), max_days=100
            )

        assert index.end == start + timedelta(days=99)
        assert len(list(index.dates())) == 100
        assert "capping" in caplog.text

    def test_records_outside_capped_period_ignored(self):
        start = date(2025, 1, 1)
        late = start + timedelta(days=150)
        store = FakeAvailabilityStore([record("alice", late)])
        index = AvailabilityIndex.load(
            store, ["alice"], start, start + timedelta(days=200), max_days=100
        )
        assert not index.is_free("alice", late, Unit.FIRST_HALF)


class TestSlotIntersector:
    """Tests for SlotIntersector."""

    def _intersector(self, records, participants, start=D1, end=D3):
        store = FakeAvailabilityStore(records)
        return SlotIntersector(AvailabilityIndex.load(store, participants, start, end, 100))

    def test_all_participants_must_be_free(self):
        records = [
            record("alice", D1),
            record("alice", D2),
            record("bob", D2, first_half=False),
        ]
        candidates = self._intersector(records, ["alice", "bob"]).candidates(
            ["alice", "bob"], UnitRestriction.BOTH
        )
        assert candidates == [SlotKey(D2, Unit.SECOND_HALF)]

    def test_chronological_order(self):
        records = [record("alice", D3), record("alice", D1)]
        candidates = self._intersector(records, ["alice"]).candidates(
            ["alice"], UnitRestriction.BOTH
        )
        assert candidates == [
            SlotKey(D1, Unit.FIRST_HALF),
            SlotKey(D1, Unit.SECOND_HALF),
            SlotKey(D3, Unit.FIRST_HALF),
            SlotKey(D3, Unit.SECOND_HALF),
        ]

    def test_restriction_limits_units(self):
        records = [record("alice", D1), record("alice", D2)]
        intersector = self._intersector(records, ["alice"])

        evening = intersector.candidates(["alice"], UnitRestriction.SECOND_HALF_ONLY)
        daytime = intersector.candidates(["alice"], UnitRestriction.FIRST_HALF_ONLY)

        assert {s.unit for s in evening} == {Unit.SECOND_HALF}
        assert {s.unit for s in daytime} == {Unit.FIRST_HALF}
        assert len(evening) == len(daytime) == 2

    def test_no_participants_no_candidates(self):
        intersector = self._intersector([record("alice", D1)], ["alice"])
        assert intersector.candidates([], UnitRestriction.BOTH) == []

    def test_nobody_declared_anything(self):
        intersector = self._intersector([], ["alice", "bob"])
        assert intersector.candidates(["alice", "bob"], UnitRestriction.BOTH) == []
