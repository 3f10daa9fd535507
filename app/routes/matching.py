"""Matching routes for triggering checks, allocation passes and expiry."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.core.database import get_session
from app.matching.allocator import GlobalAllocator
from app.matching.errors import AllocationInProgressError
from app.matching.orchestrator import MatchingOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matching", tags=["matching"])


def get_orchestrator(session: Session = Depends(get_session)) -> MatchingOrchestrator:
    """Dependency providing an orchestrator bound to the request session."""
    return build_orchestrator(session)


@router.post("/global")
async def run_global_allocation(
    orchestrator: MatchingOrchestrator = Depends(get_orchestrator),
):
    """
    Run one global allocation pass over all open events.

    Returns 409 if a pass (scheduled or manual) is already running.
    """
    allocator = GlobalAllocator(orchestrator, orchestrator.event_store)
    try:
        outcomes = allocator.run()
    except AllocationInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return [outcome.to_dict() for outcome in outcomes]


@router.post("/expire")
async def expire_overdue_events(
    orchestrator: MatchingOrchestrator = Depends(get_orchestrator),
):
    """Expire every open event whose signup deadline has passed."""
    return {"expired": orchestrator.expire_overdue()}


@router.post("/{event_id}")
async def check_event_matching(
    event_id: UUID,
    orchestrator: MatchingOrchestrator = Depends(get_orchestrator),
):
    """
    Run a matching check for one event.

    Predictable failures (not found, insufficient participants, no common
    availability and so on) come back as an unmatched outcome with a code
    and reason rather than an HTTP error.
    """
    outcome = orchestrator.check_event_matching(event_id)
    logger.info(f"Manual matching check for {event_id}: {outcome.code.value}")
    return outcome.to_dict()
