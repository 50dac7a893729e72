"""Payment coordinator — one tracked intent per approved submission.

Creates intents through a ``PaymentProcessor``, persists them through the
submission repository, and reports intent changes to subscribers (the
lifecycle engine subscribes to move the submission's status).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from creatorflow.errors import (
    PaymentInitiationFailed,
    PaymentIntentNotFoundError,
    PaymentProcessorError,
    StateConflictError,
)
from creatorflow.payments.models import (
    PaymentEvent,
    PaymentEventKind,
    PaymentIntentRecord,
    PaymentIntentStatus,
    parse_amount,
)
from creatorflow.payments.processor import PaymentProcessor

if TYPE_CHECKING:
    from creatorflow.submissions.store import SubmissionRepository

logger = logging.getLogger(__name__)

PaymentListener = Callable[[PaymentEvent], None]


class PaymentCoordinator:
    """Create and track payment intents for submissions."""

    def __init__(
        self,
        repository: SubmissionRepository,
        processor: PaymentProcessor,
        *,
        currency: str = "usd",
    ) -> None:
        self.repository = repository
        self.processor = processor
        self.currency = currency
        self._listeners: list[PaymentListener] = []

    def subscribe(self, listener: PaymentListener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: PaymentEventKind, intent: PaymentIntentRecord) -> None:
        event = PaymentEvent(kind=kind, intent_id=intent.id, submission_id=intent.submission_id)
        for listener in self._listeners:
            listener(event)

    def _require(self, intent_id: str) -> PaymentIntentRecord:
        intent = self.repository.get_intent(intent_id)
        if intent is None:
            raise PaymentIntentNotFoundError(intent_id)
        return intent

    # ── Queries ──────────────────────────────────────────────────

    def get(self, intent_id: str) -> PaymentIntentRecord | None:
        return self.repository.get_intent(intent_id)

    def pending_intent(self, submission_id: str) -> PaymentIntentRecord | None:
        """Return the submission's pending intent, if any."""
        for intent in self.repository.list_intents(submission_id):
            if intent.status == PaymentIntentStatus.PENDING:
                return intent
        return None

    # ── Commands ─────────────────────────────────────────────────

    def initiate(self, submission_id: str, amount: Decimal | int | str) -> PaymentIntentRecord:
        """Create a pending intent for ``submission_id``.

        Idempotent on the submission: an existing pending intent is returned
        unchanged.  Processor failures persist nothing.

        Raises:
            ValidationError: If the amount is not a positive number.
            PaymentInitiationFailed: If the processor could not create the intent.
        """
        value = parse_amount(amount)

        existing = self.pending_intent(submission_id)
        if existing is not None:
            logger.info(
                "Submission %s already has pending intent %s", submission_id, existing.id
            )
            return existing

        attempt = len(self.repository.list_intents(submission_id))
        try:
            intent_id = self.processor.create_intent(
                value,
                {"submission_id": submission_id},
                currency=self.currency,
                idempotency_key=f"submission-{submission_id}-{attempt}",
            )
        except PaymentProcessorError as exc:
            logger.warning("Payment initiation failed for %s: %s", submission_id, exc)
            raise PaymentInitiationFailed(
                f"Could not create payment intent for {submission_id}: {exc}"
            ) from exc

        intent = PaymentIntentRecord(
            id=intent_id,
            submission_id=submission_id,
            amount=value,
            currency=self.currency,
        )
        self.repository.put_intent(intent)
        logger.info("Created payment intent %s for %s (%s)", intent_id, submission_id, value)
        return intent

    def mark_awaiting_external_confirmation(self, intent_id: str) -> PaymentIntentRecord:
        """Checkout is in flight; confirmation will arrive out of band."""
        intent = self._require(intent_id)
        if intent.status != PaymentIntentStatus.PENDING:
            raise StateConflictError(
                f"Intent {intent_id} is {intent.status.value}, not pending",
                current=intent.status.value,
            )
        if not intent.awaiting_confirmation:
            intent.awaiting_confirmation = True
            intent.updated_at = datetime.now(tz=UTC)
            self.repository.put_intent(intent)
        self._emit(PaymentEventKind.AWAITING_CONFIRMATION, intent)
        return intent

    def confirm(self, intent_id: str) -> PaymentIntentRecord:
        """Webhook confirmation: the funds were captured.

        Confirming an already-confirmed intent re-emits the event so a
        redelivered webhook still reaches the engine.
        """
        intent = self._require(intent_id)
        if intent.status == PaymentIntentStatus.FAILED:
            raise StateConflictError(
                f"Intent {intent_id} already failed", current=intent.status.value
            )
        if intent.status != PaymentIntentStatus.CONFIRMED:
            intent.status = PaymentIntentStatus.CONFIRMED
            intent.awaiting_confirmation = False
            intent.updated_at = datetime.now(tz=UTC)
            self.repository.put_intent(intent)
            logger.info("Payment intent %s confirmed", intent_id)
        self._emit(PaymentEventKind.CONFIRMED, intent)
        return intent

    def fail(self, intent_id: str, reason: str = "") -> PaymentIntentRecord:
        """Mark an intent failed or cancelled, releasing it with the processor."""
        intent = self._require(intent_id)
        if intent.status == PaymentIntentStatus.CONFIRMED:
            raise StateConflictError(
                f"Intent {intent_id} already confirmed", current=intent.status.value
            )
        if intent.status == PaymentIntentStatus.PENDING:
            try:
                self.processor.cancel_intent(intent_id)
            except PaymentProcessorError as exc:
                logger.warning("Could not cancel intent %s with processor: %s", intent_id, exc)
            intent.status = PaymentIntentStatus.FAILED
            intent.awaiting_confirmation = False
            intent.failure_reason = reason
            intent.updated_at = datetime.now(tz=UTC)
            self.repository.put_intent(intent)
            logger.info("Payment intent %s failed: %s", intent_id, reason or "no reason given")
        self._emit(PaymentEventKind.FAILED, intent)
        return intent
