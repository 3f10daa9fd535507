"""Event model for group scheduling requests.

This module defines the Event model: a request to find a number of
bookable units, inside a bounded date period, that a group of
participants can all attend. Events are the central entity the matching
engine reads and resolves.
"""

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from app.models.enums import (
    ConfirmationMode,
    EventStatus,
    PlacementStrategy,
    SelectionStrategy,
    UnitRestriction,
)

if TYPE_CHECKING:
    from app.models.confirmation import EventConfirmation
    from app.models.history import EventStateChange


# Options reported when suggest_multiple_options is set without a cap
DEFAULT_MAX_SUGGESTIONS = 3


class Event(SQLModel, table=True):
    """A group scheduling event awaiting (or holding) a match.

    Events are created open by a creator, collect participants until their
    signup deadline, and are resolved at most once by the matching engine.
    Status only moves forward: open to matched, expired or cancelled.

    Attributes:
        id: Unique identifier (UUID).
        name: Display name of the event.
        description: Free-form description.
        creator_id: User id of the creator. Always the first participant.
        participants: User ids in join order. Stored as a JSON array.
        required_participants: Headcount the creator asked for.
        min_participants: Smallest pool that can be matched. Defaults to
            required_participants when the event is created.
        max_participants: Capacity; None means unlimited.
        optimal_participants: Preferred headcount when the pool is large.
        required_units: Number of (date, unit) pairs to book.
        period_start: First date that may be booked.
        period_end: Last date that may be booked (inclusive).
        deadline: Signup cutoff. Checks after it expire the event.
        placement_strategy: Consecutive or flexible placement of units.
        unit_restriction: Which day-parts may be used.
        minimum_consecutive: Minimum run of adjacent units (consecutive only).
        selection_strategy: first_come, lottery or manual.
        lottery_seed: Explicit seed for the lottery; event id is used if None.
        selection_deadline: Until when the creator may pick manually.
        manual_selection: Participants picked by the creator (manual only).
        allow_partial_matching: Accept fewer than required_units.
        minimum_units: Lower bound for partial matches.
        date_weights: ISO date to score multiplier for preferred dates.
        require_creator_confirmation: Creator must confirm before a match commits.
        require_participant_confirmation: Admitted participants must confirm.
        confirmation_mode: How many participant confirmations are needed.
        minimum_confirmations: Count for the minimum_count mode; None means
            required_participants.
        confirmation_deadline: Cutoff for missing confirmations. A check after
            it cancels the event.
        suggest_multiple_options: Report alternative options with a fresh match.
        max_suggestions: Cap on reported options; None means DEFAULT_MAX_SUGGESTIONS.
        status: Lifecycle status.
        matched_units: Booked units, only set once matched.
        selected_participants: Admitted participants, only set once matched.
        version: Incremented on each committed write (status or signup list).
        created_at: Creation timestamp. Earlier events win contested units.
        updated_at: Last modification timestamp.
        state_changes: Audit trail of status transitions.
        confirmations: Recorded creator and participant confirmations.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    description: str | None = None
    creator_id: str = Field(index=True)
    participants: list[str] = Field(default_factory=list, sa_column=Column(JSON))

    required_participants: int = Field(default=2)
    min_participants: int = Field(default=2)
    max_participants: int | None = None
    optimal_participants: int | None = None

    required_units: int = Field(default=1)
    period_start: date
    period_end: date
    deadline: datetime | None = Field(default=None, index=True)

    placement_strategy: PlacementStrategy = Field(default=PlacementStrategy.CONSECUTIVE)
    unit_restriction: UnitRestriction = Field(default=UnitRestriction.BOTH)
    minimum_consecutive: int = Field(default=1)

    selection_strategy: SelectionStrategy = Field(default=SelectionStrategy.FIRST_COME)
    lottery_seed: int | None = None
    selection_deadline: datetime | None = None
    manual_selection: list[str] | None = Field(default=None, sa_column=Column(JSON))

    allow_partial_matching: bool = Field(default=False)
    minimum_units: int | None = None
    date_weights: dict[str, float] | None = Field(default=None, sa_column=Column(JSON))

    require_creator_confirmation: bool = Field(default=False)
    require_participant_confirmation: bool = Field(default=False)
    confirmation_mode: ConfirmationMode = Field(default=ConfirmationMode.ALL)
    minimum_confirmations: int | None = None
    confirmation_deadline: datetime | None = None
    suggest_multiple_options: bool = Field(default=False)
    max_suggestions: int | None = None

    status: EventStatus = Field(default=EventStatus.OPEN, index=True)
    matched_units: list[dict] | None = Field(default=None, sa_column=Column(JSON))
    selected_participants: list[str] | None = Field(default=None, sa_column=Column(JSON))
    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    state_changes: list["EventStateChange"] = Relationship(back_populates="event")
    confirmations: list["EventConfirmation"] = Relationship(back_populates="event")

    @property
    def is_open(self) -> bool:
        return self.status == EventStatus.OPEN

    @property
    def requires_confirmation(self) -> bool:
        return self.require_creator_confirmation or self.require_participant_confirmation

    @property
    def suggestion_limit(self) -> int:
        """Number of options a fresh match reports, 0 when none were asked for."""
        if not self.suggest_multiple_options:
            return 0
        return self.max_suggestions or DEFAULT_MAX_SUGGESTIONS

    def participant_pool(self) -> list[str]:
        """Creator first, then the other participants in join order, deduplicated."""
        pool = [self.creator_id]
        for participant in self.participants or []:
            if participant not in pool:
                pool.append(participant)
        return pool
