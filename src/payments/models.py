"""Payment intent models."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum

from pydantic import BaseModel, Field

from creatorflow.errors import ValidationError


def parse_amount(amount: Decimal | int | str) -> Decimal:
    """Coerce a caller-supplied amount to a positive, finite Decimal.

    Raises:
        ValidationError: If the amount is not a number or not positive.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid payment amount: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Payment amount must be positive, got {amount}")
    return value


class PaymentIntentStatus(StrEnum):
    """Status of a tracked payment intent."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentIntentRecord(BaseModel):
    """A payment request to the external processor, one per approved submission."""

    id: str
    submission_id: str
    amount: Decimal = Field(gt=0)
    currency: str = "usd"
    status: PaymentIntentStatus = PaymentIntentStatus.PENDING
    awaiting_confirmation: bool = False
    failure_reason: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class PaymentEventKind(StrEnum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentEvent(BaseModel):
    """Emitted by the PaymentCoordinator when an intent changes."""

    kind: PaymentEventKind
    intent_id: str
    submission_id: str
