from app.models.availability import AvailabilityRecord
from app.models.confirmation import EventConfirmation
from app.models.enums import (
    ConfirmationKind,
    ConfirmationMode,
    EventStatus,
    PlacementStrategy,
    SelectionStrategy,
    Unit,
    UnitRestriction,
)
from app.models.event import Event
from app.models.history import EventStateChange

__all__ = [
    "AvailabilityRecord",
    "ConfirmationKind",
    "ConfirmationMode",
    "Event",
    "EventConfirmation",
    "EventStateChange",
    "EventStatus",
    "PlacementStrategy",
    "SelectionStrategy",
    "Unit",
    "UnitRestriction",
]
