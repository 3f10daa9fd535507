"""Availability model for per-user, per-date free/busy declarations.

Each row records which day-parts a user has declared free on one date.
A date without a row is busy: the matching engine never treats missing
data as availability.
"""

from datetime import UTC, date, datetime
from typing import assert_never
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.enums import Unit


class AvailabilityRecord(SQLModel, table=True):
    """A user's declared availability for one calendar date.

    Attributes:
        id: Unique identifier (UUID).
        user_id: The user declaring availability.
        day: The calendar date the declaration covers.
        first_half: Free during the first half of the day (daytime).
        second_half: Free during the second half of the day (evening).
        created_at: When the declaration was first stored.
        updated_at: When the declaration was last changed.
    """
    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_availability_user_day"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    day: date = Field(index=True)
    first_half: bool = Field(default=False)
    second_half: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_free(self, unit: Unit) -> bool:
        match unit:
            case Unit.FIRST_HALF:
                return self.first_half
            case Unit.SECOND_HALF:
                return self.second_half
            case _:
                assert_never(unit)
