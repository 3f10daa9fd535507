"""Closed enumerations shared by the models and the matching engine.

Every policy that used to travel as a free-form string (placement strategy,
unit restriction, selection strategy, event status) is a ``str`` enum so
that JSON payloads keep their readable values while the engine dispatches
on a closed set.
"""

from enum import Enum
from typing import assert_never


class Unit(str, Enum):
    """A bookable day-part. Two units per calendar date."""

    FIRST_HALF = "first_half"  # daytime
    SECOND_HALF = "second_half"  # evening

    @property
    def order(self) -> int:
        """Position of the unit within its day."""
        match self:
            case Unit.FIRST_HALF:
                return 0
            case Unit.SECOND_HALF:
                return 1
            case _:
                assert_never(self)

    @property
    def label(self) -> str:
        match self:
            case Unit.FIRST_HALF:
                return "daytime"
            case Unit.SECOND_HALF:
                return "evening"
            case _:
                assert_never(self)


class UnitRestriction(str, Enum):
    """Which units of a day an event may be placed in."""

    BOTH = "both"
    FIRST_HALF_ONLY = "first_half_only"
    SECOND_HALF_ONLY = "second_half_only"

    def allowed_units(self) -> tuple[Unit, ...]:
        """Units permitted by this restriction, in day order."""
        match self:
            case UnitRestriction.BOTH:
                return (Unit.FIRST_HALF, Unit.SECOND_HALF)
            case UnitRestriction.FIRST_HALF_ONLY:
                return (Unit.FIRST_HALF,)
            case UnitRestriction.SECOND_HALF_ONLY:
                return (Unit.SECOND_HALF,)
            case _:
                assert_never(self)


class PlacementStrategy(str, Enum):
    """How matched units are placed inside the event period."""

    CONSECUTIVE = "consecutive"
    FLEXIBLE = "flexible"


class SelectionStrategy(str, Enum):
    """How a signup pool larger than capacity is narrowed down."""

    FIRST_COME = "first_come"
    LOTTERY = "lottery"
    MANUAL = "manual"


class ConfirmationKind(str, Enum):
    """Role in which a user confirms an event."""

    CREATOR = "creator"
    PARTICIPANT = "participant"


class ConfirmationMode(str, Enum):
    """How many admitted participants must confirm before a match commits."""

    CREATOR_ONLY = "creator_only"
    ALL = "all"
    MAJORITY = "majority"
    MINIMUM_COUNT = "minimum_count"

    def required_count(self, participant_count: int, minimum: int) -> int:
        """Participant confirmations needed out of ``participant_count``."""
        match self:
            case ConfirmationMode.CREATOR_ONLY:
                return 0
            case ConfirmationMode.ALL:
                return participant_count
            case ConfirmationMode.MAJORITY:
                return (participant_count + 1) // 2
            case ConfirmationMode.MINIMUM_COUNT:
                return min(minimum, participant_count)
            case _:
                assert_never(self)


class EventStatus(str, Enum):
    """Event lifecycle state. Only ``open`` may transition."""

    OPEN = "open"
    MATCHED = "matched"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "EventStatus") -> bool:
        """Return True if moving from this status to ``target`` is allowed."""
        match self:
            case EventStatus.OPEN:
                return target is not EventStatus.OPEN
            case EventStatus.MATCHED | EventStatus.EXPIRED | EventStatus.CANCELLED:
                return False
            case _:
                assert_never(self)
