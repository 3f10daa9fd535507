"""Confirmation gate: holding a match back until the required sign-offs exist."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence, assert_never

from app.core.clock import ensure_utc
from app.matching.outcome import OutcomeCode
from app.models import ConfirmationKind, ConfirmationMode, Event, EventConfirmation


@dataclass
class ConfirmationCheck:
    """Whether a match may commit, and who still has to confirm if not."""

    satisfied: bool = True
    code: OutcomeCode | None = None
    reason: str | None = None
    pending: list[str] = field(default_factory=list)

    @classmethod
    def passed(cls) -> "ConfirmationCheck":
        return cls()

    @classmethod
    def held(cls, code: OutcomeCode, reason: str, pending: Sequence[str]) -> "ConfirmationCheck":
        return cls(satisfied=False, code=code, reason=reason, pending=list(pending))


class ConfirmationGate:
    """
    Decides whether an event's confirmations allow a match to commit.

    The creator confirmation is checked first, then participant
    confirmations among the admitted participants. A confirmation of either
    kind counts towards the participant total. Confirmations still missing
    after the event's confirmation deadline fail the event for good; before
    the deadline they only hold the match back.
    """

    def __init__(self, now: datetime):
        self.now = ensure_utc(now)

    @staticmethod
    def required_confirmations(event: Event, participant_count: int) -> int:
        """Participant confirmations needed for ``participant_count`` admitted users."""
        minimum = event.minimum_confirmations or event.required_participants
        return ConfirmationMode(event.confirmation_mode).required_count(participant_count, minimum)

    def check(
        self,
        event: Event,
        participants: Sequence[str],
        confirmations: Sequence[EventConfirmation],
    ) -> ConfirmationCheck:
        if not event.requires_confirmation:
            return ConfirmationCheck.passed()

        result = self._evaluate(event, participants, confirmations)
        if result.satisfied:
            return result

        deadline = ensure_utc(event.confirmation_deadline)
        if deadline is not None and self.now > deadline:
            return ConfirmationCheck.held(
                OutcomeCode.CONFIRMATION_DEADLINE_PASSED,
                "confirmation deadline passed",
                result.pending,
            )
        return result

    def _evaluate(
        self,
        event: Event,
        participants: Sequence[str],
        confirmations: Sequence[EventConfirmation],
    ) -> ConfirmationCheck:
        if event.require_creator_confirmation:
            creator_confirmed = any(
                c.user_id == event.creator_id
                and ConfirmationKind(c.kind) == ConfirmationKind.CREATOR
                for c in confirmations
            )
            if not creator_confirmed:
                return ConfirmationCheck.held(
                    OutcomeCode.CONFIRMATION_PENDING,
                    "creator confirmation required",
                    [event.creator_id],
                )

        if event.require_participant_confirmation:
            confirmed = {c.user_id for c in confirmations}
            pending = [p for p in participants if p not in confirmed]
            have = len(participants) - len(pending)
            need = self.required_confirmations(event, len(participants))
            if have < need:
                mode = ConfirmationMode(event.confirmation_mode)
                return ConfirmationCheck.held(
                    OutcomeCode.CONFIRMATION_PENDING,
                    f"{self._missing_label(mode)} ({have}/{need})",
                    pending,
                )

        return ConfirmationCheck.passed()

    @staticmethod
    def _missing_label(mode: ConfirmationMode) -> str:
        match mode:
            case ConfirmationMode.ALL:
                return "all participants confirmation required"
            case ConfirmationMode.MAJORITY | ConfirmationMode.MINIMUM_COUNT:
                return "minimum confirmations not met"
            case ConfirmationMode.CREATOR_ONLY:
                return "participant confirmations required"
            case _:
                assert_never(mode)
