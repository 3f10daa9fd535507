"""The (date, unit) value type and adjacency helpers."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from app.models.enums import Unit


@dataclass(frozen=True)
class SlotKey:
    """One bookable unit on one calendar date."""

    date: date
    unit: Unit

    @property
    def sort_key(self) -> tuple[date, int]:
        return (self.date, self.unit.order)

    def to_dict(self) -> dict[str, str]:
        return {"date": self.date.isoformat(), "unit": self.unit.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SlotKey":
        return cls(date=date.fromisoformat(data["date"]), unit=Unit(data["unit"]))

    def __str__(self) -> str:
        return f"{self.date.isoformat()} {self.unit.label}"


def chronological(slots: Iterable[SlotKey]) -> list[SlotKey]:
    """Sort slots by date, then by unit order within the day."""
    return sorted(slots, key=lambda s: s.sort_key)


def is_adjacent(earlier: SlotKey, later: SlotKey) -> bool:
    """
    Check whether ``later`` directly continues ``earlier``.

    Two slots are adjacent when they share a date and run from the first
    half into the second half, or when they fall on consecutive calendar
    dates (whatever their units).
    """
    if earlier.date == later.date:
        return earlier.unit is Unit.FIRST_HALF and later.unit is Unit.SECOND_HALF
    return later.date - earlier.date == timedelta(days=1)


def longest_run(slots: Iterable[SlotKey]) -> int:
    """Length of the longest chain of mutually adjacent slots."""
    ordered = chronological(set(slots))
    if not ordered:
        return 0

    best = current = 1
    for previous, slot in zip(ordered, ordered[1:]):
        if is_adjacent(previous, slot):
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best


class OccupiedSlots:
    """
    Slots already booked for each participant during one allocation pass.

    A fresh instance is created per pass and handed down the call chain.
    """

    def __init__(self):
        self._by_participant: dict[str, set[SlotKey]] = defaultdict(set)

    def is_occupied(self, participant_ids: Iterable[str], slot: SlotKey) -> bool:
        """True if any of the participants is already booked in ``slot``."""
        return any(slot in self._by_participant.get(p, ()) for p in participant_ids)

    def without_conflicts(
        self, slots: Iterable[SlotKey], participant_ids: Iterable[str]
    ) -> list[SlotKey]:
        participant_ids = list(participant_ids)
        return [s for s in slots if not self.is_occupied(participant_ids, s)]

    def reserve(self, participant_ids: Iterable[str], slots: Iterable[SlotKey]) -> None:
        slots = list(slots)
        for participant_id in participant_ids:
            self._by_participant[participant_id].update(slots)

    def slots_for(self, participant_id: str) -> frozenset[SlotKey]:
        return frozenset(self._by_participant.get(participant_id, ()))
