"""Notifications sent after an event has been matched."""

import logging
from typing import Protocol

import requests

from app.core.config import Settings
from app.matching.outcome import MatchingOutcome
from app.models import Event

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_matched(self, event: Event, outcome: MatchingOutcome) -> None: ...


def format_message(event: Event, outcome: MatchingOutcome) -> str:
    """Human-readable summary of a match."""
    units = ", ".join(str(unit) for unit in outcome.matched_units)
    message = (
        f"'{event.name}' is on: {units}. "
        f"Participants: {', '.join(outcome.selected_participants)}"
    )
    if outcome.partial:
        message += f" (partial match, {len(outcome.matched_units)}/{event.required_units} units)"
    return message


class LogNotifier:
    """Writes match notifications to the application log."""

    def notify_matched(self, event: Event, outcome: MatchingOutcome) -> None:
        logger.info(f"Event {event.id} matched: {format_message(event, outcome)}")


class WebhookNotifier:
    """
    Posts match notifications to a chat-style incoming webhook.

    The payload carries a ``content`` message plus the serialised outcome.
    Non-2xx responses raise ``requests.HTTPError``.
    """

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def notify_matched(self, event: Event, outcome: MatchingOutcome) -> None:
        payload = {
            "content": format_message(event, outcome),
            "outcome": outcome.to_dict(),
        }
        response = requests.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        logger.info(f"Sent match notification for event {event.id}")


def build_notifier(settings: Settings) -> Notifier:
    """Webhook notifier when a URL is configured, log notifier otherwise."""
    if settings.notification_webhook_url:
        return WebhookNotifier(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        )
    return LogNotifier()
