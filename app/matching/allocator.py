"""
Global allocation across all open events.

One pass visits every open event in priority order (earliest deadline
first, events without a deadline last, then oldest first) and books units
so that no participant ends up in two events at the same (date, unit).
"""

import logging
import threading
from datetime import UTC, datetime

from sqlmodel import Session

from app.core.clock import ensure_utc
from app.matching.errors import AllocationInProgressError
from app.matching.orchestrator import MatchingOrchestrator, build_orchestrator
from app.matching.outcome import MatchingOutcome
from app.matching.slots import OccupiedSlots
from app.matching.stores import EventStore, SqlEventStore
from app.models import Event

logger = logging.getLogger(__name__)

_allocation_lock = threading.Lock()

_NO_DEADLINE = datetime.max.replace(tzinfo=UTC)


def allocation_priority(event: Event) -> tuple:
    """Sort key: deadline ascending (none last), then creation time, then id."""
    deadline = ensure_utc(event.deadline)
    return (
        deadline is None,
        deadline or _NO_DEADLINE,
        ensure_utc(event.created_at),
        str(event.id),
    )


class GlobalAllocator:
    """Runs conflict-free allocation passes over every open event."""

    def __init__(self, orchestrator: MatchingOrchestrator, event_store: EventStore):
        self.orchestrator = orchestrator
        self.event_store = event_store

    def run(self) -> list[MatchingOutcome]:
        """
        Run one allocation pass.

        Raises:
            AllocationInProgressError: If another pass is already running
        """
        if not _allocation_lock.acquire(blocking=False):
            raise AllocationInProgressError("A global allocation pass is already running")
        try:
            return self._run_pass()
        finally:
            _allocation_lock.release()

    def _run_pass(self) -> list[MatchingOutcome]:
        events = sorted(self.event_store.list_open_events(), key=allocation_priority)
        logger.info(f"Global allocation started for {len(events)} open events")

        occupied = OccupiedSlots()
        outcomes = []
        for event in events:
            outcome = self.orchestrator.resolve(event, occupied)
            # Matches committed by a concurrent single-event check still hold their units
            if outcome.is_matched:
                occupied.reserve(outcome.selected_participants, outcome.matched_units)
            outcomes.append(outcome)

        matched = sum(1 for o in outcomes if o.is_matched)
        logger.info(
            f"Global allocation finished: {matched} matched, "
            f"{len(outcomes) - matched} not matched"
        )
        return outcomes


def build_allocator(session: Session) -> GlobalAllocator:
    return GlobalAllocator(build_orchestrator(session), SqlEventStore(session))
