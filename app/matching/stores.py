"""
Storage boundaries of the matching engine.

The engine only talks to events, availability and confirmations through
the protocols below. The SQL implementations run on a SQLModel session and
translate every ``SQLAlchemyError`` into ``StoreError`` after rolling the
session back, so a failed write never leaves a half-committed status.
"""

import logging
from datetime import UTC, date, datetime
from typing import Iterable, NoReturn, Protocol, Sequence
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.clock import ensure_utc
from app.matching.errors import StoreError
from app.matching.slots import SlotKey
from app.models import (
    AvailabilityRecord,
    ConfirmationKind,
    Event,
    EventConfirmation,
    EventStateChange,
    EventStatus,
)

logger = logging.getLogger(__name__)


def _fail(session: Session, action: str, error: SQLAlchemyError) -> NoReturn:
    """Roll back, log and re-raise a database error as StoreError."""
    session.rollback()
    logger.error(f"Failed to {action}: {error}")
    raise StoreError(f"Failed to {action}") from error


class EventStore(Protocol):
    def get_event(self, event_id: UUID) -> Event | None: ...

    def list_open_events(self) -> list[Event]: ...

    def update_status(
        self,
        event_id: UUID,
        status: EventStatus,
        matched_units: Sequence[SlotKey] | None = None,
        selected_participants: Sequence[str] | None = None,
        reason: str = "",
    ) -> bool: ...

    def expire_overdue(self, now: datetime) -> int: ...


class AvailabilityStore(Protocol):
    def get_availability(
        self, user_id: str, start: date, end: date
    ) -> list[AvailabilityRecord]: ...


class ConfirmationStore(Protocol):
    def list_confirmations(self, event_id: UUID) -> list[EventConfirmation]: ...


class SqlEventStore:
    """EventStore backed by the ``event`` and ``eventstatechange`` tables."""

    def __init__(self, session: Session):
        self.session = session

    def get_event(self, event_id: UUID) -> Event | None:
        try:
            return self.session.get(Event, event_id)
        except SQLAlchemyError as e:
            _fail(self.session, f"load event {event_id}", e)

    def list_open_events(self) -> list[Event]:
        try:
            statement = select(Event).where(Event.status == EventStatus.OPEN)
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            _fail(self.session, "list open events", e)

    def update_status(
        self,
        event_id: UUID,
        status: EventStatus,
        matched_units: Sequence[SlotKey] | None = None,
        selected_participants: Sequence[str] | None = None,
        reason: str = "",
    ) -> bool:
        """
        Move an open event to ``status`` if it is still open.

        The UPDATE only matches rows whose status is still ``open``, so two
        concurrent resolutions cannot both commit. The audit row is written
        in the same transaction.

        Returns:
            True if this call committed the transition, False if the event
            was no longer open (or does not exist)
        """
        if not EventStatus.OPEN.can_transition_to(status):
            raise ValueError(f"Cannot transition an open event to {status.value}")

        values = {
            "status": status,
            "version": Event.version + 1,
            "updated_at": datetime.now(UTC),
        }
        if matched_units is not None:
            values["matched_units"] = [unit.to_dict() for unit in matched_units]
        if selected_participants is not None:
            values["selected_participants"] = list(selected_participants)

        statement = (
            update(Event)
            .where(Event.id == event_id, Event.status == EventStatus.OPEN)
            .values(**values)
        )

        try:
            result = self.session.connection().execute(statement)
            if result.rowcount != 1:
                self.session.rollback()
                logger.info(f"Event {event_id} no longer open, skipping {status.value}")
                return False

            self.session.add(
                EventStateChange(
                    event_id=event_id,
                    previous_status=EventStatus.OPEN,
                    new_status=status,
                    reason=reason,
                )
            )
            self.session.commit()
        except SQLAlchemyError as e:
            _fail(self.session, f"update event {event_id} to {status.value}", e)

        return True

    def update_signup(
        self,
        event_id: UUID,
        expected_version: int,
        participants: Sequence[str] | None = None,
        manual_selection: Sequence[str] | None = None,
    ) -> bool:
        """
        Rewrite the signup lists of an open event read at ``expected_version``.

        The UPDATE only matches the row while it is still open and unchanged
        since it was read, so a join or leave cannot land on an event that
        was matched, cancelled or edited in the meantime.

        Returns:
            True if the write committed, False if the event moved on
        """
        values = {"version": Event.version + 1, "updated_at": datetime.now(UTC)}
        if participants is not None:
            values["participants"] = list(participants)
        if manual_selection is not None:
            values["manual_selection"] = list(manual_selection)

        statement = (
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.OPEN,
                Event.version == expected_version,
            )
            .values(**values)
        )

        try:
            result = self.session.connection().execute(statement)
            if result.rowcount != 1:
                self.session.rollback()
                logger.info(f"Event {event_id} changed since version {expected_version}")
                return False
            self.session.commit()
        except SQLAlchemyError as e:
            _fail(self.session, f"update signups of event {event_id}", e)

        return True

    def expire_overdue(self, now: datetime) -> int:
        """Expire every open event whose deadline is before ``now``."""
        now = ensure_utc(now)
        try:
            statement = select(Event).where(
                Event.status == EventStatus.OPEN,
                Event.deadline.is_not(None),
            )
            overdue = [
                event.id
                for event in self.session.exec(statement).all()
                if now > ensure_utc(event.deadline)
            ]
        except SQLAlchemyError as e:
            _fail(self.session, "list overdue events", e)

        expired = 0
        for event_id in overdue:
            if self.update_status(event_id, EventStatus.EXPIRED, reason="signup deadline passed"):
                expired += 1

        if expired:
            logger.info(f"Expired {expired} overdue events")
        return expired


class SqlAvailabilityStore:
    """AvailabilityStore backed by the ``availabilityrecord`` table."""

    def __init__(self, session: Session):
        self.session = session

    def get_availability(
        self, user_id: str, start: date, end: date
    ) -> list[AvailabilityRecord]:
        try:
            statement = (
                select(AvailabilityRecord)
                .where(
                    AvailabilityRecord.user_id == user_id,
                    AvailabilityRecord.day >= start,
                    AvailabilityRecord.day <= end,
                )
                .order_by(AvailabilityRecord.day)
            )
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            _fail(self.session, f"load availability for {user_id}", e)

    def set_availability(
        self,
        user_id: str,
        dates: Iterable[date],
        first_half: bool,
        second_half: bool,
    ) -> list[AvailabilityRecord]:
        """
        Insert or update one record per date for ``user_id``.

        Args:
            user_id: User declaring availability
            dates: Dates to write; duplicates are written once
            first_half: Free during the first half of each date
            second_half: Free during the second half of each date

        Returns:
            The stored records, in date order
        """
        days = sorted(set(dates))
        try:
            existing = {
                record.day: record
                for record in self.session.exec(
                    select(AvailabilityRecord).where(
                        AvailabilityRecord.user_id == user_id,
                        AvailabilityRecord.day.in_(days),
                    )
                ).all()
            }

            records = []
            for day in days:
                record = existing.get(day)
                if record is None:
                    record = AvailabilityRecord(user_id=user_id, day=day)
                record.first_half = first_half
                record.second_half = second_half
                record.updated_at = datetime.now(UTC)
                self.session.add(record)
                records.append(record)

            self.session.commit()
            for record in records:
                self.session.refresh(record)
        except SQLAlchemyError as e:
            _fail(self.session, f"store availability for {user_id}", e)

        logger.info(f"Stored availability for {user_id} on {len(records)} dates")
        return records


class SqlConfirmationStore:
    """ConfirmationStore backed by the ``eventconfirmation`` table."""

    def __init__(self, session: Session):
        self.session = session

    def list_confirmations(self, event_id: UUID) -> list[EventConfirmation]:
        try:
            statement = (
                select(EventConfirmation)
                .where(EventConfirmation.event_id == event_id)
                .order_by(EventConfirmation.confirmed_at)
            )
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            _fail(self.session, f"load confirmations of event {event_id}", e)

    def confirm(self, event_id: UUID, user_id: str, kind: ConfirmationKind) -> EventConfirmation:
        """Record a confirmation. Confirming twice returns the first record."""
        try:
            confirmation = self.session.exec(
                select(EventConfirmation).where(
                    EventConfirmation.event_id == event_id,
                    EventConfirmation.user_id == user_id,
                    EventConfirmation.kind == kind,
                )
            ).first()
            if confirmation is None:
                confirmation = EventConfirmation(event_id=event_id, user_id=user_id, kind=kind)
                self.session.add(confirmation)
                self.session.commit()
                self.session.refresh(confirmation)
                logger.info(f"Event {event_id}: {user_id} confirmed as {kind.value}")
            return confirmation
        except SQLAlchemyError as e:
            _fail(self.session, f"store confirmation of {user_id} for event {event_id}", e)

    def revoke(
        self, event_id: UUID, user_id: str, kind: ConfirmationKind | None = None
    ) -> int:
        """Delete a user's confirmations (of one kind, or all). Returns how many."""
        try:
            statement = select(EventConfirmation).where(
                EventConfirmation.event_id == event_id,
                EventConfirmation.user_id == user_id,
            )
            if kind is not None:
                statement = statement.where(EventConfirmation.kind == kind)
            revoked = self.session.exec(statement).all()
            for confirmation in revoked:
                self.session.delete(confirmation)
            self.session.commit()
        except SQLAlchemyError as e:
            _fail(self.session, f"revoke confirmation of {user_id} for event {event_id}", e)

        if revoked:
            logger.info(f"Event {event_id}: revoked {len(revoked)} confirmations of {user_id}")
        return len(revoked)
