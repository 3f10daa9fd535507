"""Placement strategies: choosing which candidate slots to book."""

from dataclasses import dataclass, field
from datetime import date
from typing import Sequence, assert_never

from app.matching.outcome import OutcomeCode, Suggestion
from app.matching.slots import SlotKey, chronological, longest_run
from app.models import Event, PlacementStrategy, Unit, UnitRestriction

# Score bonuses for units whose partner unit on the same date is also free
FULL_DAY_FIRST_HALF_BONUS = 50.0
FULL_DAY_SECOND_HALF_BONUS = 30.0


@dataclass
class Selection:
    """Slots picked by a placement strategy, or the reason none could be."""

    slots: list[SlotKey] = field(default_factory=list)
    success: bool = False
    code: OutcomeCode | None = None
    reason: str | None = None
    partial: bool = False

    @classmethod
    def failed(cls, code: OutcomeCode, reason: str) -> "Selection":
        return cls(success=False, code=code, reason=reason)


class StrategySelector:
    """
    Picks ``required_units`` slots out of the common candidates.

    Flexible placement books the earliest candidates. Consecutive placement
    scores every candidate (earlier dates and full free days score higher,
    preferred dates are multiplied by their weight) and books the best ones,
    then enforces the minimum run of adjacent units.

    Partial matching is opt-in: with ``allow_partial`` and ``minimum_units``
    set, fewer than ``required_units`` candidates are accepted as long as at
    least ``minimum_units`` exist.
    """

    def __init__(
        self,
        placement: PlacementStrategy,
        required_units: int,
        minimum_consecutive: int = 1,
        restriction: UnitRestriction = UnitRestriction.BOTH,
        allow_partial: bool = False,
        minimum_units: int | None = None,
        date_weights: dict[str, float] | None = None,
    ):
        self.placement = PlacementStrategy(placement)
        self.required_units = required_units
        self.minimum_consecutive = minimum_consecutive
        self.restriction = UnitRestriction(restriction)
        self.allow_partial = allow_partial
        self.minimum_units = minimum_units
        self.date_weights = date_weights or {}

    @classmethod
    def for_event(cls, event: Event) -> "StrategySelector":
        return cls(
            placement=event.placement_strategy,
            required_units=event.required_units,
            minimum_consecutive=event.minimum_consecutive,
            restriction=event.unit_restriction,
            allow_partial=event.allow_partial_matching,
            minimum_units=event.minimum_units,
            date_weights=event.date_weights,
        )

    def select(self, candidates: Sequence[SlotKey]) -> Selection:
        distinct = chronological(set(candidates))
        count = self.required_units
        partial = False

        if len(distinct) < self.required_units:
            if not self.allow_partial or self.minimum_units is None:
                return self._insufficient(len(distinct))
            if len(distinct) < max(self.minimum_units, 1):
                return Selection.failed(
                    OutcomeCode.INSUFFICIENT_UNITS,
                    f"minimum time slots not met (found {len(distinct)}, "
                    f"need at least {self.minimum_units})",
                )
            count = len(distinct)
            partial = True

        match self.placement:
            case PlacementStrategy.FLEXIBLE:
                chosen = distinct[:count]
            case PlacementStrategy.CONSECUTIVE:
                chosen = self._pick_consecutive(distinct, count)
                if self.minimum_consecutive > 1 and longest_run(chosen) < self.minimum_consecutive:
                    return Selection.failed(
                        OutcomeCode.MINIMUM_CONSECUTIVE_NOT_MET,
                        f"minimum consecutive requirement not met "
                        f"(need a run of {self.minimum_consecutive})",
                    )
            case _:
                assert_never(self.placement)

        return Selection(slots=chosen, success=True, partial=partial)

    def suggest(self, candidates: Sequence[SlotKey], limit: int) -> list[Suggestion]:
        """
        Up to ``limit`` disjoint options, best first.

        The first option is the one ``select`` books. Each further option is
        picked the same way from the candidates no earlier option used, and
        all options are scored against the full candidate set so their
        scores compare.
        """
        remaining = chronological(set(candidates))
        if not remaining:
            return []
        earliest, span = self._span(remaining)
        keys = set(remaining)

        suggestions: list[Suggestion] = []
        while remaining and len(suggestions) < limit:
            selection = self.select(remaining)
            if not selection.success:
                break
            score = sum(self._score(s, earliest, span, keys) for s in selection.slots)
            suggestions.append(Suggestion(slots=selection.slots, score=score))
            used = set(selection.slots)
            remaining = [s for s in remaining if s not in used]
        return suggestions

    def score(self, slot: SlotKey, candidates: Sequence[SlotKey]) -> float:
        """
        Score one candidate for consecutive placement.

        Args:
            slot: Candidate being scored
            candidates: All distinct candidates, used for the date span and
                to detect full free days

        Returns:
            Weighted score; higher is better
        """
        return self._score(slot, *self._span(candidates), set(candidates))

    @staticmethod
    def _span(candidates: Sequence[SlotKey]) -> tuple[date, int]:
        dates = [c.date for c in candidates]
        earliest = min(dates)
        return earliest, (max(dates) - earliest).days

    def _score(self, slot: SlotKey, earliest: date, span: int, keys: set[SlotKey]) -> float:
        distance = (slot.date - earliest).days / span if span else 0.0
        score = 100.0 * (1.0 - distance)

        match slot.unit:
            case Unit.FIRST_HALF:
                if SlotKey(slot.date, Unit.SECOND_HALF) in keys:
                    score += FULL_DAY_FIRST_HALF_BONUS
            case Unit.SECOND_HALF:
                if SlotKey(slot.date, Unit.FIRST_HALF) in keys:
                    score += FULL_DAY_SECOND_HALF_BONUS
            case _:
                assert_never(slot.unit)

        return score * self.date_weights.get(slot.date.isoformat(), 1.0)

    def _pick_consecutive(self, distinct: list[SlotKey], count: int) -> list[SlotKey]:
        if not distinct:
            return []
        earliest, span = self._span(distinct)
        keys = set(distinct)
        # sorted() is stable, so equal scores keep chronological order
        ranked = sorted(
            distinct, key=lambda s: self._score(s, earliest, span, keys), reverse=True
        )
        return chronological(ranked[:count])

    def _insufficient(self, found: int) -> Selection:
        match self.restriction:
            case UnitRestriction.FIRST_HALF_ONLY:
                label = "insufficient daytime slots"
            case UnitRestriction.SECOND_HALF_ONLY:
                label = "insufficient evening slots"
            case UnitRestriction.BOTH:
                if found == 0:
                    return Selection.failed(
                        OutcomeCode.NO_COMMON_AVAILABILITY, "no common availability"
                    )
                label = "insufficient time slots"
            case _:
                assert_never(self.restriction)

        return Selection.failed(
            OutcomeCode.INSUFFICIENT_UNITS,
            f"{label} (found {found}, need {self.required_units})",
        )
