"""Matching outcomes returned to callers of the engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from app.matching.slots import SlotKey, chronological
from app.models import Event, EventStatus


class OutcomeCode(str, Enum):
    """Machine-readable result of a matching check."""

    MATCHED = "matched"
    EVENT_NOT_FOUND = "event_not_found"
    EVENT_ALREADY_RESOLVED = "event_already_resolved"
    DEADLINE_PASSED = "deadline_passed"
    INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
    MANUAL_SELECTION_PENDING = "manual_selection_pending"
    CONFIRMATION_PENDING = "confirmation_pending"
    CONFIRMATION_DEADLINE_PASSED = "confirmation_deadline_passed"
    INSUFFICIENT_UNITS = "insufficient_units"
    MINIMUM_CONSECUTIVE_NOT_MET = "minimum_consecutive_not_met"
    NO_COMMON_AVAILABILITY = "no_common_availability"
    NO_CONFLICT_FREE_UNITS = "no_conflict_free_units"


NO_CONFLICT_FREE_REASON = "No available time slots without conflicts"


@dataclass
class Suggestion:
    """One bookable option for an event and its placement score."""

    slots: list[SlotKey]
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"units": [unit.to_dict() for unit in self.slots], "score": self.score}


@dataclass
class MatchingOutcome:
    """
    Result of one matching check.

    ``matched_units`` and ``selected_participants`` are only populated for
    matched events (or when echoing an event that is already matched).
    ``pending_confirmations`` lists the users whose confirmation is still
    missing when a check is held back for confirmation.
    ``suggestions`` holds alternative options for a fresh match when the
    event asked for them, the booked option first.
    """

    event_id: UUID | None
    is_matched: bool
    code: OutcomeCode
    reason: str
    matched_units: list[SlotKey] = field(default_factory=list)
    selected_participants: list[str] = field(default_factory=list)
    status: EventStatus | None = None
    partial: bool = False
    pending_confirmations: list[str] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)

    @classmethod
    def not_found(cls, event_id: UUID) -> "MatchingOutcome":
        return cls(
            event_id=event_id,
            is_matched=False,
            code=OutcomeCode.EVENT_NOT_FOUND,
            reason="Event not found",
        )

    @classmethod
    def already_resolved(cls, event: Event) -> "MatchingOutcome":
        """Echo the stored decision of an event that is no longer open."""
        status = EventStatus(event.status)
        units = [SlotKey.from_dict(unit) for unit in event.matched_units or []]
        return cls(
            event_id=event.id,
            is_matched=status == EventStatus.MATCHED,
            code=OutcomeCode.EVENT_ALREADY_RESOLVED,
            reason=f"Event already resolved (status: {status.value})",
            matched_units=chronological(units),
            selected_participants=list(event.selected_participants or []),
            status=status,
            partial=status == EventStatus.MATCHED and len(units) < event.required_units,
        )

    @classmethod
    def unmatched(cls, event: Event, code: OutcomeCode, reason: str) -> "MatchingOutcome":
        return cls(
            event_id=event.id,
            is_matched=False,
            code=code,
            reason=reason,
            status=EventStatus(event.status),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for the HTTP layer."""
        return {
            "event_id": str(self.event_id) if self.event_id else None,
            "is_matched": self.is_matched,
            "code": self.code.value,
            "reason": self.reason,
            "matched_units": [unit.to_dict() for unit in self.matched_units],
            "selected_participants": self.selected_participants,
            "status": self.status.value if self.status else None,
            "partial": self.partial,
            "pending_confirmations": self.pending_confirmations,
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
        }
