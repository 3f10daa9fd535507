"""Background job scheduler for deadline expiry and global allocation."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session

from app.core.config import settings
from app.core.database import engine
from app.matching.allocator import build_allocator
from app.matching.errors import AllocationInProgressError
from app.matching.orchestrator import build_orchestrator
from app.matching.outcome import OutcomeCode

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def deadline_job():
    """Background expiry of events past their signup deadline."""
    try:
        with Session(engine) as session:
            expired = build_orchestrator(session).expire_overdue()
            logger.info(f"Deadline check completed: {expired} events expired")
    except Exception as e:
        logger.error(f"Deadline check failed: {e}")


def allocation_job():
    """Background global allocation pass."""
    try:
        with Session(engine) as session:
            outcomes = build_allocator(session).run()
            matched = sum(1 for o in outcomes if o.code == OutcomeCode.MATCHED)
            logger.info(
                f"Background allocation completed: {len(outcomes)} events checked, {matched} matched"
            )
    except AllocationInProgressError:
        logger.info("Background allocation skipped, a pass is already running")
    except Exception as e:
        logger.error(f"Background allocation failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    scheduler.add_job(
        deadline_job,
        trigger=IntervalTrigger(minutes=settings.deadline_check_interval_minutes),
        id="deadline_check",
        replace_existing=True,
    )
    if settings.allocation_interval_minutes > 0:
        scheduler.add_job(
            allocation_job,
            trigger=IntervalTrigger(minutes=settings.allocation_interval_minutes),
            id="global_allocation",
            replace_existing=True,
        )
    scheduler.start()
    logger.info(
        f"Scheduler started, checking deadlines every {settings.deadline_check_interval_minutes} "
        f"minutes, allocating every {settings.allocation_interval_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
