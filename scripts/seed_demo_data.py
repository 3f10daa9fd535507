#!/usr/bin/env python3
"""
Seed the database with demo events and availability, then run one pass.

Creates a handful of users with random-but-reproducible availability over
the next two weeks, three open events that compete for some of the same
people, and runs a global allocation pass so the results can be inspected
through the API.

Usage:
    python scripts/seed_demo_data.py [--dry-run] [--no-allocate]

Options:
    --dry-run       Show what would be created without writing anything
    --no-allocate   Seed data only, skip the allocation pass
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import random
from datetime import UTC, date, datetime, timedelta

from sqlmodel import Session

from app.core.database import create_db_and_tables, engine
from app.matching.allocator import build_allocator
from app.matching.stores import SqlAvailabilityStore
from app.models import Event, PlacementStrategy, SelectionStrategy, UnitRestriction

USERS = ["alice", "bob", "carol", "dave", "erin", "frank"]
SEED = 20250601


def demo_events(start: date, now: datetime) -> list[Event]:
    """Three events with overlapping participants and different policies."""
    end = start + timedelta(days=13)
    return [
        Event(
            name="Board game night",
            creator_id="alice",
            participants=["alice", "bob", "carol"],
            required_participants=3,
            min_participants=3,
            period_start=start,
            period_end=end,
            deadline=now + timedelta(days=2),
            unit_restriction=UnitRestriction.SECOND_HALF_ONLY,
        ),
        Event(
            name="Weekend hike",
            creator_id="dave",
            participants=["dave", "bob", "erin", "frank", "carol"],
            required_participants=3,
            min_participants=3,
            max_participants=4,
            required_units=2,
            minimum_consecutive=2,
            period_start=start,
            period_end=end,
            deadline=now + timedelta(days=5),
            selection_strategy=SelectionStrategy.LOTTERY,
        ),
        Event(
            name="Study sessions",
            creator_id="erin",
            participants=["erin", "alice"],
            required_units=3,
            period_start=start,
            period_end=end,
            placement_strategy=PlacementStrategy.FLEXIBLE,
            allow_partial_matching=True,
            minimum_units=2,
        ),
    ]


def main(dry_run: bool = False, allocate: bool = True):
    """Create demo users, availability and events."""
    rng = random.Random(SEED)
    now = datetime.now(UTC)
    start = now.date() + timedelta(days=1)
    days = [start + timedelta(days=i) for i in range(14)]

    if not dry_run:
        create_db_and_tables()

    with Session(engine) as session:
        store = SqlAvailabilityStore(session)

        for user in USERS:
            free_days = sorted(rng.sample(days, k=8))
            evenings = [d for d in free_days if rng.random() < 0.7]
            daytimes = [d for d in free_days if d not in evenings]
            print(f"{user}: {len(evenings)} free evenings, {len(daytimes)} free daytimes")
            if dry_run:
                continue
            if evenings:
                store.set_availability(user, evenings, first_half=rng.random() < 0.5, second_half=True)
            if daytimes:
                store.set_availability(user, daytimes, first_half=True, second_half=False)

        for event in demo_events(start, now):
            print(f"Event: {event.name} ({len(event.participants)} signed up)")
            if not dry_run:
                session.add(event)
        if dry_run:
            print("\nDry run complete, nothing written.")
            return
        session.commit()

        if not allocate:
            return

        print("\nRunning global allocation...")
        for outcome in build_allocator(session).run():
            units = ", ".join(str(u) for u in outcome.matched_units) or "-"
            print(f"  {outcome.event_id}: {outcome.code.value} ({outcome.reason}) {units}")


if __name__ == "__main__":
    dry_run = "--dry-run" in sys.argv
    allocate = "--no-allocate" not in sys.argv
    main(dry_run=dry_run, allocate=allocate)
