"""Payments — intents tied one-to-one to approved submissions."""

from creatorflow.payments.models import (
    PaymentEvent,
    PaymentEventKind,
    PaymentIntentRecord,
    PaymentIntentStatus,
    parse_amount,
)
from creatorflow.payments.processor import ManualPaymentProcessor, PaymentProcessor
from creatorflow.payments.coordinator import PaymentCoordinator

__all__ = [
    "ManualPaymentProcessor",
    "PaymentCoordinator",
    "PaymentEvent",
    "PaymentEventKind",
    "PaymentIntentRecord",
    "PaymentIntentStatus",
    "PaymentProcessor",
    "parse_amount",
]
