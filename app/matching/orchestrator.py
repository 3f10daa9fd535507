"""
Matching orchestration for a single event.

A check walks the event through a fixed sequence:

1. Load the event (missing -> not found)
2. Echo the stored decision if the event is no longer open
3. Expire the event if its signup deadline has passed
4. Admit participants (may fail or be pending a manual pick)
5. Hold back until the required confirmations exist (cancel once the
   confirmation deadline has passed)
6. Intersect availability and pick units with the placement strategy
7. Commit the match, attach alternative options if asked for, then notify

Only steps 3, 5 and 7 write, and both go through the event store's
compare-and-set, so an event is resolved at most once.
"""

import logging
from uuid import UUID

from sqlmodel import Session

from app.core.clock import Clock, ensure_utc, utcnow
from app.core.config import settings
from app.matching.availability import AvailabilityIndex
from app.matching.confirmation import ConfirmationGate
from app.matching.intersector import SlotIntersector
from app.matching.notifier import LogNotifier, Notifier, build_notifier
from app.matching.outcome import NO_CONFLICT_FREE_REASON, MatchingOutcome, OutcomeCode
from app.matching.participants import ParticipantSelector
from app.matching.slots import OccupiedSlots
from app.matching.stores import (
    AvailabilityStore,
    ConfirmationStore,
    EventStore,
    SqlAvailabilityStore,
    SqlConfirmationStore,
    SqlEventStore,
)
from app.matching.strategy import StrategySelector
from app.models import Event, EventConfirmation, EventStatus, UnitRestriction

logger = logging.getLogger(__name__)


class MatchingOrchestrator:
    """Runs matching checks against an event store and an availability store."""

    def __init__(
        self,
        event_store: EventStore,
        availability_store: AvailabilityStore,
        notifier: Notifier | None = None,
        *,
        clock: Clock = utcnow,
        max_period_days: int | None = None,
        confirmation_store: ConfirmationStore | None = None,
    ):
        self.event_store = event_store
        self.availability_store = availability_store
        self.notifier = notifier or LogNotifier()
        self.clock = clock
        self.max_period_days = max_period_days or settings.max_period_days
        self.confirmation_store = confirmation_store

    def check_event_matching(self, event_id: UUID) -> MatchingOutcome:
        """Run one matching check for ``event_id``."""
        event = self.event_store.get_event(event_id)
        if event is None:
            logger.info(f"Event {event_id}: not found")
            return MatchingOutcome.not_found(event_id)
        return self.resolve(event)

    def resolve(self, event: Event, occupied: OccupiedSlots | None = None) -> MatchingOutcome:
        """
        Run the matching sequence for a loaded event.

        Args:
            event: Event to check
            occupied: Slots already booked during a global allocation pass.
                Candidates that clash with any admitted participant's
                bookings are dropped before placement.

        Returns:
            MatchingOutcome describing the decision
        """
        if not event.is_open:
            return MatchingOutcome.already_resolved(event)

        now = ensure_utc(self.clock())
        deadline = ensure_utc(event.deadline)
        if deadline is not None and now > deadline:
            return self._close(
                event, EventStatus.EXPIRED, OutcomeCode.DEADLINE_PASSED, "signup deadline passed"
            )

        admitted = ParticipantSelector(now).select(event)
        if not admitted.success:
            return self._unmatched(event, admitted.code, admitted.reason)

        gate = ConfirmationGate(now).check(
            event, admitted.participants, self._confirmations(event)
        )
        if not gate.satisfied:
            if gate.code == OutcomeCode.CONFIRMATION_DEADLINE_PASSED:
                return self._close(
                    event, EventStatus.CANCELLED, gate.code, gate.reason, gate.pending
                )
            outcome = self._unmatched(event, gate.code, gate.reason)
            outcome.pending_confirmations = gate.pending
            return outcome

        index = AvailabilityIndex.load(
            self.availability_store,
            admitted.participants,
            event.period_start,
            event.period_end,
            self.max_period_days,
        )
        candidates = SlotIntersector(index).candidates(
            admitted.participants, UnitRestriction(event.unit_restriction)
        )

        available = candidates
        if occupied is not None:
            available = occupied.without_conflicts(candidates, admitted.participants)

        selector = StrategySelector.for_event(event)
        selection = selector.select(available)
        if not selection.success:
            if len(available) < len(candidates):
                return self._unmatched(
                    event, OutcomeCode.NO_CONFLICT_FREE_UNITS, NO_CONFLICT_FREE_REASON
                )
            return self._unmatched(event, selection.code, selection.reason)

        event_id = event.id
        suggestion_limit = event.suggestion_limit
        committed = self.event_store.update_status(
            event_id,
            EventStatus.MATCHED,
            matched_units=selection.slots,
            selected_participants=admitted.participants,
            reason="matched" if not selection.partial else "partially matched",
        )
        if not committed:
            return self._reload(event_id)

        outcome = MatchingOutcome(
            event_id=event_id,
            is_matched=True,
            code=OutcomeCode.MATCHED,
            reason="matched",
            matched_units=selection.slots,
            selected_participants=admitted.participants,
            status=EventStatus.MATCHED,
            partial=selection.partial,
        )
        if suggestion_limit:
            outcome.suggestions = selector.suggest(available, suggestion_limit)
        logger.info(
            f"Event {event_id}: matched {len(selection.slots)} units "
            f"with {len(admitted.participants)} participants"
        )
        self._notify(event, outcome)
        return outcome

    def expire_overdue(self) -> int:
        """Expire every open event whose deadline has passed."""
        return self.event_store.expire_overdue(ensure_utc(self.clock()))

    def _confirmations(self, event: Event) -> list[EventConfirmation]:
        if not event.requires_confirmation or self.confirmation_store is None:
            return []
        return self.confirmation_store.list_confirmations(event.id)

    def _close(
        self,
        event: Event,
        status: EventStatus,
        code: OutcomeCode,
        reason: str,
        pending: list[str] | None = None,
    ) -> MatchingOutcome:
        """Move an open event to a final non-matched status."""
        event_id = event.id
        committed = self.event_store.update_status(event_id, status, reason=reason)
        if not committed:
            return self._reload(event_id)

        logger.info(f"Event {event_id}: {status.value}, {reason}")
        return MatchingOutcome(
            event_id=event_id,
            is_matched=False,
            code=code,
            reason=reason,
            status=status,
            pending_confirmations=list(pending or []),
        )

    def _reload(self, event_id: UUID) -> MatchingOutcome:
        # Another check resolved the event between our read and our write
        event = self.event_store.get_event(event_id)
        if event is None:
            return MatchingOutcome.not_found(event_id)
        logger.info(f"Event {event_id}: resolved concurrently as {EventStatus(event.status).value}")
        return MatchingOutcome.already_resolved(event)

    def _unmatched(self, event: Event, code: OutcomeCode, reason: str) -> MatchingOutcome:
        logger.info(f"Event {event.id}: not matched ({code.value}: {reason})")
        return MatchingOutcome.unmatched(event, code, reason)

    def _notify(self, event: Event, outcome: MatchingOutcome) -> None:
        try:
            self.notifier.notify_matched(event, outcome)
        except Exception as e:
            logger.warning(f"Notification for event {outcome.event_id} failed: {e}")


def build_orchestrator(session: Session) -> MatchingOrchestrator:
    """Orchestrator wired to the SQL stores and the configured notifier."""
    return MatchingOrchestrator(
        SqlEventStore(session),
        SqlAvailabilityStore(session),
        build_notifier(settings),
        confirmation_store=SqlConfirmationStore(session),
    )
