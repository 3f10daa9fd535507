"""State change model for the audit trail of event resolutions.

This module defines the EventStateChange model which records an
immutable row whenever an event leaves the open state. It is written in
the same transaction as the status change itself.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

from app.models.enums import EventStatus

if TYPE_CHECKING:
    from app.models.event import Event


class EventStateChange(SQLModel, table=True):
    """A record of one committed status transition.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the Event that changed.
        previous_status: Status before the transition.
        new_status: Status after the transition.
        reason: Human-readable reason from the matching outcome.
        changed_at: Timestamp of the transition.
        event: Reference to the parent Event object.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    previous_status: EventStatus
    new_status: EventStatus
    reason: str = ""
    changed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="state_changes")
