"""Per-participant availability lookup over a bounded date range."""

import logging
from datetime import date, timedelta
from typing import Iterator, Sequence

from app.matching.stores import AvailabilityStore
from app.models import AvailabilityRecord, Unit

logger = logging.getLogger(__name__)

DayAvailability = dict[Unit, bool]


class AvailabilityIndex:
    """
    Indexes declared availability by participant, date and unit.

    Built once per check by fetching each participant's records a single
    time. Lookups for a date with no record answer "busy", so missing data
    can never produce a match.
    """

    def __init__(
        self,
        start: date,
        end: date,
        availability: dict[str, dict[date, DayAvailability]],
    ) -> None:
        self.start = start
        self.end = end
        self._availability = availability

    @classmethod
    def load(
        cls,
        store: AvailabilityStore,
        participant_ids: Sequence[str],
        start: date,
        end: date,
        max_days: int,
    ) -> "AvailabilityIndex":
        """
        Fetch and index availability for the given participants.

        Args:
            store: Source of AvailabilityRecord rows
            participant_ids: Users to index; duplicates are fetched once
            start: First date of the period
            end: Last date of the period (inclusive)
            max_days: Cap on the number of days indexed from ``start``

        Returns:
            AvailabilityIndex covering the (possibly capped) period
        """
        start, end = cls.cap_period(start, end, max_days)

        availability: dict[str, dict[date, DayAvailability]] = {}
        for participant_id in participant_ids:
            if participant_id in availability:
                continue
            records = store.get_availability(participant_id, start, end)
            availability[participant_id] = cls._index_records(records, start, end)

        return cls(start=start, end=end, availability=availability)

    @staticmethod
    def cap_period(start: date, end: date, max_days: int) -> tuple[date, date]:
        """Clamp ``end`` so that at most ``max_days`` dates are covered."""
        capped_end = start + timedelta(days=max_days - 1)
        if end > capped_end:
            logger.warning(
                f"Period {start} - {end} exceeds {max_days} days, capping at {capped_end}"
            )
            return start, capped_end
        return start, end

    @staticmethod
    def _index_records(
        records: Sequence[AvailabilityRecord], start: date, end: date
    ) -> dict[date, DayAvailability]:
        by_date: dict[date, DayAvailability] = {}
        for record in records:
            if not start <= record.day <= end:
                continue
            by_date[record.day] = {unit: record.is_free(unit) for unit in Unit}
        return by_date

    def dates(self) -> Iterator[date]:
        """Every date of the indexed period, ascending."""
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def is_free(self, participant_id: str, day: date, unit: Unit) -> bool:
        """Return True only if an explicit record marks ``unit`` free on ``day``."""
        day_availability = self._availability.get(participant_id, {}).get(day)
        if day_availability is None:
            return False
        return day_availability.get(unit, False)
