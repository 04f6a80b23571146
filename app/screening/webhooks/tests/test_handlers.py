"""Tests for the rail webhook handler registry."""

from unittest.mock import MagicMock, patch

import pytest

from core.services import ServiceResult
from screening.services import IntakeOutcome, IntakeStatus
from screening.tests.factories import WebhookRecordFactory
from screening.webhooks.handlers import (
    INFORMATIONAL_EVENT_TYPES,
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    register_handler,
)


class TestHandlerRegistry:
    def test_known_events_registered(self):
        assert "incoming_payment.completed" in WEBHOOK_HANDLERS
        for event_type in INFORMATIONAL_EVENT_TYPES:
            assert event_type in WEBHOOK_HANDLERS

    def test_register_handler(self, db):
        handler = MagicMock(return_value=ServiceResult.success({"ok": True}))
        register_handler("test.custom")(handler)
        webhook = WebhookRecordFactory(event_type="test.custom")

        try:
            result = dispatch_webhook(webhook)
        finally:
            WEBHOOK_HANDLERS.pop("test.custom")

        assert result.data == {"ok": True}
        handler.assert_called_once_with(webhook)

    def test_unknown_event_ignored(self, db):
        result = dispatch_webhook(WebhookRecordFactory(event_type="mystery.event"))

        assert result.success
        assert result.data == {"status": "ignored"}

    def test_informational_event_acknowledged(self, db):
        result = dispatch_webhook(WebhookRecordFactory(event_type="outgoing_payment.completed"))

        assert result.data == {"status": "acknowledged"}


class TestIncomingPaymentCompleted:
    def test_runs_intake(self, db):
        webhook = WebhookRecordFactory()
        engine = MagicMock()
        engine.intake.return_value = IntakeOutcome(IntakeStatus.SKIPPED, reason="No account")

        with patch("screening.services.get_screening_engine", return_value=engine):
            result = dispatch_webhook(webhook)

        engine.intake.assert_called_once_with(webhook)
        assert result.data == {"status": "skipped", "reason": "No account"}

    def test_intake_errors_propagate(self, db):
        webhook = WebhookRecordFactory()
        engine = MagicMock()
        engine.intake.side_effect = RuntimeError("ledger down")

        with patch("screening.services.get_screening_engine", return_value=engine):
            with pytest.raises(RuntimeError, match="ledger down"):
                dispatch_webhook(webhook)
