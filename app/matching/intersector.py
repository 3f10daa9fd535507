"""Enumerates the (date, unit) pairs where every participant is free."""

from typing import Sequence

from app.matching.availability import AvailabilityIndex
from app.matching.slots import SlotKey
from app.models import UnitRestriction


class SlotIntersector:
    """
    Intersects participant availability over an indexed period.

    Algorithm:
    1. Walk the period date by date, ascending
    2. Within a date, try each unit the restriction allows, in day order
    3. Keep the slot only if every participant is free in it

    The result is chronological by construction. The intersector never
    decides success; callers pick how many candidates they need.
    """

    def __init__(self, index: AvailabilityIndex):
        self.index = index

    def candidates(
        self,
        participant_ids: Sequence[str],
        restriction: UnitRestriction,
    ) -> list[SlotKey]:
        if not participant_ids:
            return []

        units = restriction.allowed_units()
        found: list[SlotKey] = []

        for day in self.index.dates():
            for unit in units:
                if all(self.index.is_free(p, day, unit) for p in participant_ids):
                    found.append(SlotKey(date=day, unit=unit))

        return found
