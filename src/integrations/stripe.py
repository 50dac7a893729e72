"""Stripe integration — payment processor and webhook handling.

Payment intents are created and cancelled through the ``stripe`` SDK with
per-request API keys and idempotency keys; webhooks are verified with
``stripe.Webhook.construct_event`` before they reach the payment coordinator.
"""

from __future__ import annotations

import logging
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from pydantic import BaseModel

from creatorflow.errors import PaymentProcessorError, ValidationError
from creatorflow.payments.coordinator import PaymentCoordinator
from creatorflow.payments.models import PaymentIntentRecord
from creatorflow.payments.processor import PaymentProcessor

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300

# Currencies Stripe expects in whole units rather than cents.
ZERO_DECIMAL_CURRENCIES = frozenset({"jpy", "krw", "vnd", "clp", "xof", "xaf"})


class StripeConfig(BaseModel):
    """Configuration for Stripe payments."""

    secret_key: str = ""
    webhook_secret: str = ""
    max_network_retries: int = 2

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    @classmethod
    def from_env(cls) -> StripeConfig:
        """Create config from environment variables."""
        return cls(
            secret_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
        )


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a decimal amount to Stripe's integer minor units."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentProcessor(PaymentProcessor):
    """PaymentProcessor backed by Stripe PaymentIntents."""

    def __init__(self, config: StripeConfig) -> None:
        self.config = config
        stripe.max_network_retries = config.max_network_retries

    def create_intent(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        *,
        currency: str = "usd",
        idempotency_key: str | None = None,
    ) -> str:
        options: dict[str, Any] = {"api_key": self.config.secret_key}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount, currency),
                currency=currency.lower(),
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
                **options,
            )
        except stripe.StripeError as exc:
            raise PaymentProcessorError(f"Stripe payment intent failed: {exc}") from exc

        intent_id = getattr(intent, "id", None)
        if not intent_id:
            raise PaymentProcessorError("Stripe response did not include a payment intent id")
        logger.info("Created Stripe payment intent %s", intent_id)
        return intent_id

    def cancel_intent(self, intent_id: str) -> None:
        try:
            stripe.PaymentIntent.cancel(intent_id, api_key=self.config.secret_key)
        except stripe.StripeError as exc:
            raise PaymentProcessorError(f"Stripe cancel of {intent_id} failed: {exc}") from exc


# ── Webhooks ─────────────────────────────────────────────────────────


class StripeWebhookEvent(BaseModel):
    """The parts of a Stripe event the lifecycle reacts to."""

    id: str
    type: str
    intent_id: str
    failure_message: str = ""


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except KeyError:
        return None


def parse_webhook_event(
    payload: bytes,
    signature_header: str,
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
) -> StripeWebhookEvent:
    """Verify and decode a payment-intent webhook.

    Raises:
        ValidationError: If the signature or the payload is invalid.
    """
    try:
        event = stripe.Webhook.construct_event(
            payload, signature_header, secret, tolerance=tolerance
        )
    except stripe.SignatureVerificationError as exc:
        raise ValidationError(f"Invalid Stripe webhook signature: {exc}") from exc
    except ValueError as exc:
        raise ValidationError(f"Malformed Stripe webhook payload: {exc}") from exc

    try:
        obj = event["data"]["object"]
        last_error = _field(obj, "last_payment_error")
        message = _field(last_error, "message") if last_error else None
        return StripeWebhookEvent(
            id=event["id"],
            type=event["type"],
            intent_id=obj["id"],
            failure_message=message or "",
        )
    except (KeyError, TypeError) as exc:
        raise ValidationError(f"Malformed Stripe webhook payload: {exc}") from exc


def handle_webhook_event(
    event: StripeWebhookEvent, coordinator: PaymentCoordinator
) -> PaymentIntentRecord | None:
    """Route a verified event to the payment coordinator.

    Returns the updated intent, or None for event types the lifecycle ignores
    or intents it does not track.
    """
    if coordinator.get(event.intent_id) is None:
        logger.info("Ignoring %s for untracked intent %s", event.type, event.intent_id)
        return None
    if event.type == "payment_intent.succeeded":
        return coordinator.confirm(event.intent_id)
    if event.type == "payment_intent.processing":
        return coordinator.mark_awaiting_external_confirmation(event.intent_id)
    if event.type in ("payment_intent.payment_failed", "payment_intent.canceled"):
        reason = event.failure_message or event.type
        return coordinator.fail(event.intent_id, reason)
    logger.debug("Ignoring Stripe event type %s", event.type)
    return None
