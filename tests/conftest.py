"""Shared test fixtures."""

from datetime import UTC, date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from app.core.database import get_session
from app.main import app
from app.matching.orchestrator import MatchingOrchestrator
from app.matching.stores import (
    SqlAvailabilityStore,
    SqlConfirmationStore,
    SqlEventStore,
)
from app.models import Event
from app.routes.matching import get_orchestrator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
PERIOD_START = date(2025, 6, 2)
PERIOD_END = date(2025, 6, 8)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingNotifier:
    """Notifier that remembers every call, optionally failing."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def notify_matched(self, event, outcome):
        self.calls.append((event.id, outcome))
        if self.fail:
            raise RuntimeError("webhook unreachable")


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(name="orchestrator")
def orchestrator_fixture(
    session: Session, clock: FixedClock, notifier: RecordingNotifier
) -> MatchingOrchestrator:
    """Orchestrator on the test database with a fixed clock."""
    return MatchingOrchestrator(
        SqlEventStore(session),
        SqlAvailabilityStore(session),
        notifier,
        clock=clock,
        max_period_days=100,
        confirmation_store=SqlConfirmationStore(session),
    )


@pytest.fixture(name="client")
def client_fixture(session: Session, orchestrator: MatchingOrchestrator):
    """Create a test client with the test database session."""

    def get_session_override():
        return session

    def get_orchestrator_override():
        return orchestrator

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_orchestrator] = get_orchestrator_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_event")
def make_event_fixture(session: Session):
    """Factory storing an open event; keyword arguments override the defaults."""

    def make_event(**overrides) -> Event:
        fields = {
            "name": "Board game night",
            "creator_id": "alice",
            "participants": ["alice", "bob"],
            "required_participants": 2,
            "min_participants": 2,
            "required_units": 1,
            "period_start": PERIOD_START,
            "period_end": PERIOD_END,
            "deadline": NOW + timedelta(days=7),
        }
        fields.update(overrides)
        event = Event(**fields)
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    return make_event


@pytest.fixture(name="free")
def free_fixture(session: Session):
    """Factory declaring users free on dates (both units unless told otherwise)."""
    store = SqlAvailabilityStore(session)

    def free(user_ids, days, first_half: bool = True, second_half: bool = True):
        if isinstance(user_ids, str):
            user_ids = [user_ids]
        if isinstance(days, date):
            days = [days]
        for user_id in user_ids:
            store.set_availability(user_id, days, first_half, second_half)

    return free
