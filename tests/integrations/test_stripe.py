"""Tests for the Stripe payment processor and webhook handling."""

import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe
from creatorflow.errors import PaymentProcessorError, ValidationError
from creatorflow.integrations.stripe import (
    StripeConfig,
    StripePaymentProcessor,
    StripeWebhookEvent,
    handle_webhook_event,
    parse_webhook_event,
    to_minor_units,
)
from creatorflow.payments import PaymentCoordinator, PaymentIntentStatus
from creatorflow.submissions.store import InMemorySubmissionRepository

_CONFIG = StripeConfig(secret_key="sk_test_123", webhook_secret="whsec_abc")


def _sign(payload: bytes, secret: str = "whsec_abc", timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _event_payload(event_type: str, intent_id: str = "pi_1", **obj: object) -> bytes:
    return json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", **obj}},
    }).encode()


class TestStripeConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_live_x")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_y")
        config = StripeConfig.from_env()
        assert config.is_configured
        assert config.webhook_secret == "whsec_y"

    def test_not_configured(self):
        assert not StripeConfig().is_configured


class TestMinorUnits:
    def test_cents(self):
        assert to_minor_units(Decimal("49.99"), "usd") == 4999

    def test_rounding(self):
        assert to_minor_units(Decimal("10.005"), "usd") == 1001

    def test_zero_decimal_currency(self):
        assert to_minor_units(Decimal("500"), "JPY") == 500


class TestStripePaymentProcessor:
    def test_create_intent_request(self):
        processor = StripePaymentProcessor(_CONFIG)
        with patch("stripe.PaymentIntent.create", return_value=MagicMock(id="pi_123")) as mock_create:
            intent_id = processor.create_intent(
                Decimal("25.50"),
                {"submission_id": "sub-1"},
                currency="USD",
                idempotency_key="submission-sub-1-0",
            )

        assert intent_id == "pi_123"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["amount"] == 2550
        assert kwargs["currency"] == "usd"
        assert kwargs["metadata"] == {"submission_id": "sub-1"}
        assert kwargs["automatic_payment_methods"] == {"enabled": True}
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["idempotency_key"] == "submission-sub-1-0"

    def test_no_idempotency_key(self):
        processor = StripePaymentProcessor(_CONFIG)
        with patch("stripe.PaymentIntent.create", return_value=MagicMock(id="pi_1")) as mock_create:
            processor.create_intent(Decimal("10"), {})
        assert "idempotency_key" not in mock_create.call_args.kwargs

    def test_stripe_error_raises(self):
        processor = StripePaymentProcessor(_CONFIG)
        error = stripe.CardError("Your card was declined.", None, "card_declined")
        with patch("stripe.PaymentIntent.create", side_effect=error):
            with pytest.raises(PaymentProcessorError, match="card was declined"):
                processor.create_intent(Decimal("10"), {})

    def test_connection_error_raises(self):
        processor = StripePaymentProcessor(_CONFIG)
        with patch("stripe.PaymentIntent.create", side_effect=stripe.APIConnectionError("dns")):
            with pytest.raises(PaymentProcessorError):
                processor.create_intent(Decimal("10"), {})

    def test_missing_id_raises(self):
        processor = StripePaymentProcessor(_CONFIG)
        with patch("stripe.PaymentIntent.create", return_value=MagicMock(id=None)):
            with pytest.raises(PaymentProcessorError):
                processor.create_intent(Decimal("10"), {})

    def test_cancel_intent(self):
        processor = StripePaymentProcessor(_CONFIG)
        with patch("stripe.PaymentIntent.cancel") as mock_cancel:
            processor.cancel_intent("pi_1")
        mock_cancel.assert_called_once_with("pi_1", api_key="sk_test_123")


class TestParseWebhookEvent:
    def test_valid_event(self):
        payload = _event_payload("payment_intent.succeeded")
        event = parse_webhook_event(payload, _sign(payload), "whsec_abc")
        assert event == StripeWebhookEvent(
            id="evt_1", type="payment_intent.succeeded", intent_id="pi_1"
        )

    def test_parses_failure_message(self):
        payload = _event_payload(
            "payment_intent.payment_failed",
            last_payment_error={"message": "insufficient funds"},
        )
        event = parse_webhook_event(payload, _sign(payload), "whsec_abc")
        assert event.failure_message == "insufficient funds"

    def test_wrong_secret(self):
        payload = _event_payload("payment_intent.succeeded")
        with pytest.raises(ValidationError, match="signature"):
            parse_webhook_event(payload, _sign(payload, "other"), "whsec_abc")

    def test_tampered_payload(self):
        payload = _event_payload("payment_intent.succeeded")
        header = _sign(payload)
        with pytest.raises(ValidationError, match="signature"):
            parse_webhook_event(payload + b" ", header, "whsec_abc")

    def test_expired_timestamp(self):
        payload = _event_payload("payment_intent.succeeded")
        header = _sign(payload, timestamp=int(time.time()) - 3600)
        with pytest.raises(ValidationError, match="signature"):
            parse_webhook_event(payload, header, "whsec_abc")

    def test_malformed_payload(self):
        payload = b'{"id": "evt_1", "object": "event"}'
        with pytest.raises(ValidationError, match="Malformed"):
            parse_webhook_event(payload, _sign(payload), "whsec_abc")


class TestHandleWebhookEvent:
    @pytest.fixture
    def coordinator(self) -> PaymentCoordinator:
        processor = MagicMock()
        processor.create_intent.return_value = "pi_1"
        return PaymentCoordinator(InMemorySubmissionRepository(), processor)

    def test_succeeded_confirms(self, coordinator):
        coordinator.initiate("sub-1", 10)
        event = StripeWebhookEvent(id="e", type="payment_intent.succeeded", intent_id="pi_1")
        assert handle_webhook_event(event, coordinator).status == PaymentIntentStatus.CONFIRMED

    def test_processing_marks_awaiting(self, coordinator):
        coordinator.initiate("sub-1", 10)
        event = StripeWebhookEvent(id="e", type="payment_intent.processing", intent_id="pi_1")
        assert handle_webhook_event(event, coordinator).awaiting_confirmation

    def test_failed_records_reason(self, coordinator):
        coordinator.initiate("sub-1", 10)
        event = StripeWebhookEvent(
            id="e",
            type="payment_intent.payment_failed",
            intent_id="pi_1",
            failure_message="insufficient funds",
        )
        result = handle_webhook_event(event, coordinator)
        assert result.status == PaymentIntentStatus.FAILED
        assert result.failure_reason == "insufficient funds"

    def test_untracked_intent_ignored(self, coordinator):
        event = StripeWebhookEvent(id="e", type="payment_intent.succeeded", intent_id="pi_other")
        assert handle_webhook_event(event, coordinator) is None

    def test_other_event_types_ignored(self, coordinator):
        coordinator.initiate("sub-1", 10)
        event = StripeWebhookEvent(id="e", type="payment_intent.created", intent_id="pi_1")
        assert handle_webhook_event(event, coordinator) is None
