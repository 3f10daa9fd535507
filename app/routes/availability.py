"""Availability routes for declaring and reading free/busy dates."""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from app.core.config import settings
from app.core.database import get_session
from app.matching.stores import SqlAvailabilityStore

router = APIRouter(prefix="/availability", tags=["availability"])


class AvailabilityUpdate(BaseModel):
    dates: list[date]
    first_half: bool = False
    second_half: bool = False

    @field_validator("dates")
    @classmethod
    def validate_dates(cls, v: list[date]) -> list[date]:
        if not v:
            raise ValueError("dates must not be empty")
        if len(set(v)) > settings.max_period_days:
            raise ValueError(f"at most {settings.max_period_days} dates per request")
        return v


@router.put("/{user_id}")
async def set_availability(
    user_id: str,
    req: AvailabilityUpdate,
    session: Session = Depends(get_session),
):
    """
    Declare availability for a set of dates.

    Existing records for those dates are overwritten. Dates not listed are
    left untouched; a date without any record counts as busy.
    """
    store = SqlAvailabilityStore(session)
    return store.set_availability(user_id, req.dates, req.first_half, req.second_half)


@router.get("/{user_id}")
async def get_availability(
    user_id: str,
    start: date,
    end: date,
    session: Session = Depends(get_session),
):
    """Declared availability of a user between ``start`` and ``end`` inclusive."""
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    return SqlAvailabilityStore(session).get_availability(user_id, start, end)
