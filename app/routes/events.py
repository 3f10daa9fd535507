"""Event routes for creating events and managing their participants."""
from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlmodel import Session, select

from app.core.clock import ensure_utc
from app.core.database import get_session
from app.matching.stores import SqlConfirmationStore, SqlEventStore
from app.models import (
    ConfirmationKind,
    ConfirmationMode,
    Event,
    EventStateChange,
    EventStatus,
    PlacementStrategy,
    SelectionStrategy,
    UnitRestriction,
)

router = APIRouter(prefix="/events", tags=["events"])


class EventCreate(BaseModel):
    name: str
    description: str | None = None
    creator_id: str
    participants: list[str] = []
    required_participants: int = Field(default=2, ge=1)
    min_participants: int | None = Field(default=None, ge=1)
    max_participants: int | None = Field(default=None, ge=1)
    optimal_participants: int | None = Field(default=None, ge=1)
    required_units: int = Field(default=1, ge=1)
    period_start: date
    period_end: date
    deadline: datetime | None = None
    placement_strategy: PlacementStrategy = PlacementStrategy.CONSECUTIVE
    unit_restriction: UnitRestriction = UnitRestriction.BOTH
    minimum_consecutive: int = Field(default=1, ge=1)
    selection_strategy: SelectionStrategy = SelectionStrategy.FIRST_COME
    lottery_seed: int | None = None
    selection_deadline: datetime | None = None
    allow_partial_matching: bool = False
    minimum_units: int | None = Field(default=None, ge=1)
    date_weights: dict[date, float] | None = None
    require_creator_confirmation: bool = False
    require_participant_confirmation: bool = False
    confirmation_mode: ConfirmationMode = ConfirmationMode.ALL
    minimum_confirmations: int | None = Field(default=None, ge=1)
    confirmation_deadline: datetime | None = None
    suggest_multiple_options: bool = False
    max_suggestions: int | None = Field(default=None, ge=1, le=10)

    @field_validator("name", "creator_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("must be 1-200 characters")
        return v

    @field_validator("date_weights")
    @classmethod
    def validate_date_weights(cls, v: dict[date, float] | None) -> dict[date, float] | None:
        if v is not None:
            for day, weight in v.items():
                if weight <= 0:
                    raise ValueError(f"weight for {day} must be positive")
        return v

    @model_validator(mode="after")
    def validate_ranges(self) -> "EventCreate":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")

        minimum = self.min_participants or self.required_participants
        if self.max_participants is not None and minimum > self.max_participants:
            raise ValueError("min_participants must not exceed max_participants")
        if self.optimal_participants is not None:
            if self.optimal_participants < minimum:
                raise ValueError("optimal_participants must not be below min_participants")
            if self.max_participants is not None and self.optimal_participants > self.max_participants:
                raise ValueError("optimal_participants must not exceed max_participants")

        if self.minimum_units is not None and self.minimum_units > self.required_units:
            raise ValueError("minimum_units must not exceed required_units")

        if self.confirmation_deadline is not None and not (
            self.require_creator_confirmation or self.require_participant_confirmation
        ):
            raise ValueError("confirmation_deadline requires a confirmation requirement")
        return self

    def to_event(self) -> Event:
        participants = [self.creator_id]
        for participant in self.participants:
            participant = participant.strip()
            if participant and participant not in participants:
                participants.append(participant)

        return Event(
            name=self.name,
            description=self.description,
            creator_id=self.creator_id,
            participants=participants,
            required_participants=self.required_participants,
            min_participants=self.min_participants or self.required_participants,
            max_participants=self.max_participants,
            optimal_participants=self.optimal_participants,
            required_units=self.required_units,
            period_start=self.period_start,
            period_end=self.period_end,
            deadline=ensure_utc(self.deadline),
            placement_strategy=self.placement_strategy,
            unit_restriction=self.unit_restriction,
            minimum_consecutive=self.minimum_consecutive,
            selection_strategy=self.selection_strategy,
            lottery_seed=self.lottery_seed,
            selection_deadline=ensure_utc(self.selection_deadline),
            allow_partial_matching=self.allow_partial_matching,
            minimum_units=self.minimum_units,
            date_weights=(
                {day.isoformat(): weight for day, weight in self.date_weights.items()}
                if self.date_weights
                else None
            ),
            require_creator_confirmation=self.require_creator_confirmation,
            require_participant_confirmation=self.require_participant_confirmation,
            confirmation_mode=self.confirmation_mode,
            minimum_confirmations=self.minimum_confirmations,
            confirmation_deadline=ensure_utc(self.confirmation_deadline),
            suggest_multiple_options=self.suggest_multiple_options,
            max_suggestions=self.max_suggestions,
        )


class ParticipantRequest(BaseModel):
    user_id: str

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("user_id must not be empty")
        return v


class SelectionRequest(ParticipantRequest):
    participants: list[str]


class ConfirmationRequest(ParticipantRequest):
    kind: ConfirmationKind = ConfirmationKind.PARTICIPANT


def get_open_event(event_id: UUID, session: Session) -> Event:
    """Load an event for mutation: 404 if missing, 400 if no longer open."""
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not event.is_open:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot modify {EventStatus(event.status).value} event",
        )
    return event


def save_signups(
    session: Session,
    event: Event,
    participants: list[str] | None = None,
    manual_selection: list[str] | None = None,
) -> Event:
    """Write signup changes against the version read; 409 if the event moved on."""
    if not SqlEventStore(session).update_signup(
        event.id,
        event.version,
        participants=participants,
        manual_selection=manual_selection,
    ):
        raise HTTPException(status_code=409, detail="Event was modified concurrently, retry")
    session.refresh(event)
    return event


@router.post("", status_code=201)
async def create_event(req: EventCreate, session: Session = Depends(get_session)):
    """
    Create a new open event.

    The creator is always stored as the first participant. Any additional
    participants are appended in the order given, duplicates dropped.
    """
    event = req.to_event()
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@router.get("")
async def list_events(
    status: EventStatus | None = None,
    session: Session = Depends(get_session),
):
    """List events, oldest first, optionally filtered by status."""
    statement = select(Event).order_by(Event.created_at)
    if status is not None:
        statement = statement.where(Event.status == status)
    return session.exec(statement).all()


@router.get("/{event_id}")
async def get_event(event_id: UUID, session: Session = Depends(get_session)):
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/{event_id}/history")
async def event_history(event_id: UUID, session: Session = Depends(get_session)):
    """Status transitions of an event, oldest first."""
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    statement = (
        select(EventStateChange)
        .where(EventStateChange.event_id == event_id)
        .order_by(EventStateChange.changed_at)
    )
    return session.exec(statement).all()


@router.post("/{event_id}/join")
async def join_event(
    event_id: UUID,
    req: ParticipantRequest,
    session: Session = Depends(get_session),
):
    """Add a participant to the end of an open event's signup list."""
    event = get_open_event(event_id, session)
    if req.user_id in event.participant_pool():
        raise HTTPException(status_code=400, detail="Already joined")

    return save_signups(session, event, participants=event.participant_pool() + [req.user_id])


@router.post("/{event_id}/leave")
async def leave_event(
    event_id: UUID,
    req: ParticipantRequest,
    session: Session = Depends(get_session),
):
    """Remove a participant from an open event. The creator cannot leave."""
    event = get_open_event(event_id, session)
    if req.user_id == event.creator_id:
        raise HTTPException(status_code=400, detail="The creator cannot leave the event")
    if req.user_id not in event.participant_pool():
        raise HTTPException(status_code=400, detail="Not a participant")

    manual_selection = None
    if event.manual_selection:
        manual_selection = [p for p in event.manual_selection if p != req.user_id]
    save_signups(
        session,
        event,
        participants=[p for p in event.participant_pool() if p != req.user_id],
        manual_selection=manual_selection,
    )
    SqlConfirmationStore(session).revoke(event_id, req.user_id)
    session.refresh(event)
    return event


@router.post("/{event_id}/cancel")
async def cancel_event(
    event_id: UUID,
    req: ParticipantRequest,
    session: Session = Depends(get_session),
):
    """
    Cancel an open event.

    Only the creator may cancel. The transition goes through the same
    compare-and-set as matching, so an event matched in the meantime
    cannot be cancelled.
    """
    event = get_open_event(event_id, session)
    if req.user_id != event.creator_id:
        raise HTTPException(status_code=403, detail="Only the creator can cancel the event")

    if not SqlEventStore(session).update_status(
        event_id, EventStatus.CANCELLED, reason=f"cancelled by {req.user_id}"
    ):
        raise HTTPException(status_code=400, detail="Event is no longer open")

    session.refresh(event)
    return event


@router.put("/{event_id}/selection")
async def set_manual_selection(
    event_id: UUID,
    req: SelectionRequest,
    session: Session = Depends(get_session),
):
    """
    Record the creator's manual pick of participants.

    Only used by events with the manual selection strategy. Every picked
    user must already be a participant.
    """
    event = get_open_event(event_id, session)
    if req.user_id != event.creator_id:
        raise HTTPException(status_code=403, detail="Only the creator can select participants")
    if SelectionStrategy(event.selection_strategy) != SelectionStrategy.MANUAL:
        raise HTTPException(status_code=400, detail="Event does not use manual selection")

    pool = event.participant_pool()
    unknown = [p for p in req.participants if p not in pool]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Not participants of this event: {', '.join(unknown)}",
        )

    selection = [event.creator_id]
    for participant in req.participants:
        if participant not in selection:
            selection.append(participant)

    return save_signups(session, event, manual_selection=selection)


@router.post("/{event_id}/confirm", status_code=201)
async def confirm_event(
    event_id: UUID,
    req: ConfirmationRequest,
    session: Session = Depends(get_session),
):
    """
    Record a creator or participant confirmation for an open event.

    Creator confirmations are only accepted from the creator. Participant
    confirmations are accepted from anyone in the signup list. Confirming
    twice is harmless.
    """
    event = get_open_event(event_id, session)
    if req.kind == ConfirmationKind.CREATOR and req.user_id != event.creator_id:
        raise HTTPException(status_code=403, detail="Only the creator can confirm as creator")
    if req.user_id not in event.participant_pool():
        raise HTTPException(status_code=400, detail="Not a participant")

    return SqlConfirmationStore(session).confirm(event_id, req.user_id, req.kind)


@router.get("/{event_id}/confirmations")
async def list_confirmations(event_id: UUID, session: Session = Depends(get_session)):
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return SqlConfirmationStore(session).list_confirmations(event_id)


@router.delete("/{event_id}/confirmations/{user_id}", status_code=204)
async def revoke_confirmation(
    event_id: UUID,
    user_id: str,
    kind: ConfirmationKind | None = None,
    session: Session = Depends(get_session),
):
    """Withdraw a user's confirmations (of one kind, or all) before matching."""
    get_open_event(event_id, session)
    if not SqlConfirmationStore(session).revoke(event_id, user_id, kind):
        raise HTTPException(status_code=404, detail="No confirmation to revoke")
