"""Payment processor boundary."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal

logger = logging.getLogger(__name__)


class PaymentProcessor(ABC):
    """External processor that holds and releases funds.

    Implementations raise ``PaymentProcessorError`` on any failure.
    """

    @abstractmethod
    def create_intent(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        *,
        currency: str = "usd",
        idempotency_key: str | None = None,
    ) -> str:
        """Create a payment intent and return its processor id."""

    def cancel_intent(self, intent_id: str) -> None:
        """Release a held intent. Default: nothing to release."""


class ManualPaymentProcessor(PaymentProcessor):
    """Payouts settled by an admin outside any processor.

    Intent ids are generated locally; confirmation arrives when an admin
    marks the payout as processed.
    """

    def __init__(self, prefix: str = "manual") -> None:
        self.prefix = prefix
        self._keys: dict[str, str] = {}

    def create_intent(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        *,
        currency: str = "usd",
        idempotency_key: str | None = None,
    ) -> str:
        if idempotency_key and idempotency_key in self._keys:
            return self._keys[idempotency_key]
        intent_id = f"{self.prefix}_{uuid.uuid4().hex[:16]}"
        if idempotency_key:
            self._keys[idempotency_key] = intent_id
        logger.info("Recorded manual payout %s for %s %s", intent_id, amount, currency)
        return intent_id
