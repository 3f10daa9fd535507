"""Tests for match notifiers."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.core.config import Settings
from app.matching.notifier import (
    LogNotifier,
    WebhookNotifier,
    build_notifier,
    format_message,
)
from app.matching.outcome import MatchingOutcome, OutcomeCode
from app.matching.slots import SlotKey
from app.models import Event, EventStatus, Unit


@pytest.fixture(name="matched")
def matched_fixture():
    event = Event(
        name="Pottery",
        creator_id="alice",
        participants=["alice", "bob"],
        required_units=2,
        period_start=date(2025, 6, 2),
        period_end=date(2025, 6, 8),
    )
    outcome = MatchingOutcome(
        event_id=event.id,
        is_matched=True,
        code=OutcomeCode.MATCHED,
        reason="matched",
        matched_units=[SlotKey(date(2025, 6, 3), Unit.SECOND_HALF)],
        selected_participants=["alice", "bob"],
        status=EventStatus.MATCHED,
        partial=True,
    )
    return event, outcome


class TestNotifiers:
    """Tests for the log and webhook notifiers."""

    def test_format_message(self, matched):
        event, outcome = matched
        message = format_message(event, outcome)

        assert "'Pottery' is on: 2025-06-03 evening" in message
        assert "alice, bob" in message
        assert "partial match, 1/2 units" in message

    def test_webhook_posts_outcome(self, matched):
        event, outcome = matched
        response = MagicMock()

        with patch("app.matching.notifier.requests.post", return_value=response) as post:
            WebhookNotifier("https://hooks.example.test/abc", timeout=2.0).notify_matched(
                event, outcome
            )

        post.assert_called_once()
        args, kwargs = post.call_args
        assert args == ("https://hooks.example.test/abc",)
        assert kwargs["timeout"] == 2.0
        assert kwargs["json"]["outcome"]["code"] == "matched"
        assert kwargs["json"]["content"].startswith("'Pottery'")
        response.raise_for_status.assert_called_once()

    def test_webhook_http_error_propagates(self, matched):
        event, outcome = matched
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500")

        with patch("app.matching.notifier.requests.post", return_value=response):
            with pytest.raises(requests.HTTPError):
                WebhookNotifier("https://hooks.example.test/abc").notify_matched(event, outcome)

    def test_build_notifier(self):
        assert isinstance(build_notifier(Settings(notification_webhook_url="")), LogNotifier)

        webhook = build_notifier(
            Settings(
                notification_webhook_url="https://hooks.example.test/abc",
                notification_timeout_seconds=1.5,
            )
        )
        assert isinstance(webhook, WebhookNotifier)
        assert webhook.timeout == 1.5
