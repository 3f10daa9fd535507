"""Database configuration and session management for SQLite.

This module configures the SQLite database engine with settings suited to
the matching service: WAL mode so the scheduled sweeps can write while
requests read, and foreign key enforcement for the audit trail.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Allows concurrent readers while writing.
      The deadline and global allocation jobs commit status changes while
      API requests read events and availability.

    - **Foreign Keys**: Disabled by default in SQLite. Enabled so that
      EventStateChange rows always reference an existing Event.

    - **check_same_thread=False**: Required for FastAPI. Sessions may be
      handed between threads by the dependency injection machinery and by
      the background scheduler.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings

connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    # Import models so their tables are registered on the metadata
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
