"""Confirmation model for creator and participant sign-off on a match.

This module defines the EventConfirmation model. Events can require the
creator, the participants, or both to confirm before the matching engine
is allowed to commit a match. One row exists per (event, user, kind);
revoking a confirmation deletes the row.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from app.models.enums import ConfirmationKind

if TYPE_CHECKING:
    from app.models.event import Event


class EventConfirmation(SQLModel, table=True):
    """A user's confirmation that an event may go ahead.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the confirmed Event.
        user_id: The confirming user.
        kind: Whether the user confirmed as creator or as participant.
        confirmed_at: Timestamp when the confirmation was recorded.
        event: Reference to the parent Event object.
    """
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", "kind", name="uq_confirmation_event_user_kind"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    user_id: str = Field(index=True)
    kind: ConfirmationKind = Field(default=ConfirmationKind.PARTICIPANT)
    confirmed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="confirmations")
