"""
Exception hierarchy for hard failures of the matching engine.

Predictable "no match" conditions are not exceptions: they come back as a
``MatchingOutcome``. These classes cover the cases where the engine could
not reach a decision at all.
"""


class MatchingError(Exception):
    """Base class for all matching engine errors."""


class StoreError(MatchingError):
    """Raised when an event or availability store operation fails."""


class AllocationInProgressError(MatchingError):
    """Raised when a global allocation pass is already running."""
