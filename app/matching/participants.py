"""Participant selection: narrowing a signup pool down to the admitted group."""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import assert_never

from app.core.clock import ensure_utc
from app.matching.outcome import OutcomeCode
from app.models import Event, SelectionStrategy

logger = logging.getLogger(__name__)


@dataclass
class ParticipantSelection:
    """Admitted participants (creator first), or why none could be admitted yet."""

    participants: list[str] = field(default_factory=list)
    success: bool = False
    code: OutcomeCode | None = None
    reason: str | None = None

    @classmethod
    def admitted(cls, participants: list[str]) -> "ParticipantSelection":
        return cls(participants=participants, success=True)

    @classmethod
    def failed(cls, code: OutcomeCode, reason: str) -> "ParticipantSelection":
        return cls(success=False, code=code, reason=reason)


def lottery_seed(event: Event) -> int:
    """Explicit lottery seed, or one derived from the event id."""
    if event.lottery_seed is not None:
        return event.lottery_seed
    digest = hashlib.sha256(str(event.id).encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def lottery_score(participant_id: str, seed: int) -> int:
    """
    Stable lottery ticket for one participant.

    Only meant to make draws reproducible for a given seed; it is not a
    fairness or security guarantee.
    """
    digest = hashlib.sha256(f"{participant_id}:{seed}".encode("utf-8")).hexdigest()
    return int(digest, 16)


class ParticipantSelector:
    """
    Decides which participants of an event take part in the match.

    The creator is always admitted. When the pool is larger than the
    target headcount, the event's selection strategy picks the rest.
    """

    def __init__(self, now: datetime):
        self.now = ensure_utc(now)

    @staticmethod
    def target_count(event: Event, pool_size: int) -> int:
        """Headcount to admit from a pool of ``pool_size`` participants."""
        if event.optimal_participants is not None and pool_size >= event.optimal_participants:
            target = event.optimal_participants
        elif event.max_participants is not None and pool_size > event.max_participants:
            target = event.max_participants
        else:
            target = pool_size
        return max(target, event.min_participants)

    def select(self, event: Event) -> ParticipantSelection:
        pool = event.participant_pool()

        if len(pool) < event.min_participants:
            return self._not_enough(len(pool), event.min_participants)

        target = self.target_count(event, len(pool))
        if len(pool) <= target:
            return ParticipantSelection.admitted(pool)

        strategy = SelectionStrategy(event.selection_strategy)
        match strategy:
            case SelectionStrategy.FIRST_COME:
                chosen = self._first_come(pool, target)
            case SelectionStrategy.LOTTERY:
                chosen = self._lottery(pool, target, lottery_seed(event))
            case SelectionStrategy.MANUAL:
                if event.manual_selection:
                    chosen = self._manual(pool, target, event.manual_selection)
                    if len(chosen) < event.min_participants:
                        return self._not_enough(len(chosen), event.min_participants)
                else:
                    deadline = ensure_utc(event.selection_deadline)
                    if deadline is not None and self.now < deadline:
                        return ParticipantSelection.failed(
                            OutcomeCode.MANUAL_SELECTION_PENDING,
                            f"manual selection pending until {deadline.isoformat()}",
                        )
                    logger.info(
                        f"Event {event.id}: no manual selection made, falling back to first come"
                    )
                    chosen = self._first_come(pool, target)
            case _:
                assert_never(strategy)

        return ParticipantSelection.admitted(chosen)

    @staticmethod
    def _not_enough(have: int, need: int) -> ParticipantSelection:
        return ParticipantSelection.failed(
            OutcomeCode.INSUFFICIENT_PARTICIPANTS,
            f"insufficient participants: minimum participants not met ({have}/{need})",
        )

    @staticmethod
    def _first_come(pool: list[str], target: int) -> list[str]:
        return pool[:target]

    @staticmethod
    def _lottery(pool: list[str], target: int, seed: int) -> list[str]:
        creator, others = pool[0], pool[1:]
        ranked = sorted(others, key=lambda p: (-lottery_score(p, seed), p))
        winners = set(ranked[: target - 1])
        return [creator] + [p for p in others if p in winners]

    @staticmethod
    def _manual(pool: list[str], target: int, manual_selection: list[str]) -> list[str]:
        creator = pool[0]
        chosen = [creator]
        for participant in manual_selection:
            if participant in pool and participant not in chosen:
                chosen.append(participant)
        return chosen[:target]
