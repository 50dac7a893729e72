"""Submission lifecycle engine.

The engine is the only writer of submission state.  Every operation reads
the submission, checks the transition table, computes the next state and
writes it conditionally on the version it read; a concurrent writer makes
the write fail with ``ConcurrentModificationError`` and the caller reloads
and retries.

Two tracks progress independently after approval:

- the proof track (gated models only): ``approved -> proof_requested ->
  proof_received -> proof_verified``;
- the payment track: a payment intent created at approval and confirmed out
  of band.

``status`` moves into ``awaiting_payment`` / ``payment_confirmed`` only once
the proof track has reached its resting state (``approved`` for ungated
models, ``proof_verified`` for gated ones).  Payment progress that arrives
earlier lives on the intent record, and ``verify_proof`` catches the status
up.  Download readiness never depends on payment.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Literal, TypeVar

from pydantic import BaseModel

from creatorflow.errors import (
    ConcurrentModificationError,
    PaymentInitiationFailed,
    ProjectNotFoundError,
    RevisionLimitExceeded,
    StateConflictError,
    SubmissionNotFoundError,
    ValidationError,
)
from creatorflow.notifications import NotificationChannel, send_notification
from creatorflow.payments import (
    PaymentCoordinator,
    PaymentEvent,
    PaymentEventKind,
    PaymentIntentStatus,
    parse_amount,
)
from creatorflow.submissions.ledger import RevisionLedger
from creatorflow.submissions.models import (
    PROOF_STATUSES,
    STATUS_RANK,
    ReviewRecord,
    Submission,
    SubmissionStatus,
    SubmissionStatusView,
)
from creatorflow.submissions.store import SubmissionRepository
from creatorflow.submissions.transitions import check_transition, proof_track_resting_state

if TYPE_CHECKING:
    from creatorflow.proof import DistributionProofCoordinator, ProofFetchOutcome

logger = logging.getLogger(__name__)

S = SubmissionStatus
T = TypeVar("T")

MAX_EVENT_ATTEMPTS = 3

_PAYABLE_STATUSES = frozenset(
    {S.APPROVED, S.PROOF_REQUESTED, S.PROOF_RECEIVED, S.PROOF_VERIFIED}
)


class Requested(BaseModel):
    """Proof requested; nothing fetched yet."""

    kind: Literal["requested"] = "requested"
    submission: Submission


class ReceivedWithProof(BaseModel):
    """Proof requested and fetched in the same call."""

    kind: Literal["received"] = "received"
    submission: Submission
    proof: str


ProofRequestResult = Requested | ReceivedWithProof


def is_ready_for_download(submission: Submission) -> bool:
    """Whether the brand may download the asset.

    Ungated models unlock at approval; gated models once the proof is
    verified.  Payment state is irrelevant.
    """
    rank = STATUS_RANK[submission.status]
    if submission.requires_proof:
        return rank >= STATUS_RANK[S.PROOF_VERIFIED]
    return rank >= STATUS_RANK[S.APPROVED]


class SubmissionLifecycleEngine:
    """Orchestrates review, proof and payment transitions for submissions."""

    def __init__(
        self,
        repository: SubmissionRepository,
        *,
        proofs: DistributionProofCoordinator,
        payments: PaymentCoordinator,
        notifications: NotificationChannel | None = None,
    ) -> None:
        self.repository = repository
        self.proofs = proofs
        self.payments = payments
        self.notifications = notifications
        payments.subscribe(self._on_payment_event)

    # ── Private helpers ──────────────────────────────────────────

    def _load(self, submission_id: str, expected_version: int | None = None) -> Submission:
        submission = self.repository.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        if expected_version is not None and submission.version != expected_version:
            raise ConcurrentModificationError(submission_id, expected_version, submission.version)
        return submission

    @staticmethod
    def _check_invariants(submission: Submission) -> None:
        if submission.revisions_used > submission.max_revisions:
            raise StateConflictError(
                f"{submission.id} would exceed {submission.max_revisions} revisions"
            )
        if submission.proof and STATUS_RANK[submission.status] < STATUS_RANK[S.PROOF_RECEIVED]:
            raise StateConflictError(
                f"{submission.id} cannot hold a proof while {submission.status.value}"
            )
        if not submission.requires_proof and submission.status in PROOF_STATUSES:
            raise StateConflictError(
                f"{submission.content_distribution_model.value} submission "
                f"{submission.id} cannot be {submission.status.value}"
            )

    def _write(
        self,
        current: Submission,
        updated: Submission,
        *,
        review: ReviewRecord | None = None,
    ) -> Submission:
        """Conditionally persist ``updated`` over ``current``."""
        updated.version = current.version + 1
        updated.updated_at = datetime.now(tz=UTC)
        self._check_invariants(updated)
        if not self.repository.put_if_version(updated, current.version, review=review):
            stored = self.repository.get(current.id)
            raise ConcurrentModificationError(
                current.id, current.version, stored.version if stored else None
            )
        return updated

    def _transition(
        self,
        current: Submission,
        target: SubmissionStatus,
        *,
        review: ReviewRecord | None = None,
        **changes: object,
    ) -> Submission:
        check_transition(current.status, target, current.content_distribution_model)
        updated = current.model_copy(update={"status": target, **changes}, deep=True)
        updated = self._write(current, updated, review=review)
        logger.info(
            "Submission %s: %s -> %s (v%d)",
            updated.id,
            current.status.value,
            target.value,
            updated.version,
        )
        return updated

    def _notify(self, submission: Submission, message: str) -> None:
        send_notification(self.notifications, submission.creator_id, message)

    def _require_gated(self, submission: Submission) -> None:
        if not submission.requires_proof:
            raise StateConflictError(
                f"{submission.content_distribution_model.value} submissions "
                "have no distribution proof",
                current=submission.status.value,
            )

    # ── Creation and review ──────────────────────────────────────

    def submit(self, creator_id: str, project_id: str, asset_ref: str) -> Submission:
        """Create a submission in ``submitted`` for a creator's upload.

        Raises:
            ValidationError: If an identifier or the asset reference is empty.
            ProjectNotFoundError: If the project does not exist.
        """
        if not creator_id.strip() or not project_id.strip() or not asset_ref.strip():
            raise ValidationError("creator_id, project_id and asset_ref are required")
        project = self.repository.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        submission = Submission(
            project_id=project.id,
            creator_id=creator_id,
            content_distribution_model=project.content_distribution_model,
            max_revisions=project.max_revisions,
            asset_ref=asset_ref,
        )
        if not self.repository.create(submission):
            raise ConcurrentModificationError(submission.id, 0, None)
        logger.info(
            "Submission %s created for project %s by %s",
            submission.id,
            project.id,
            creator_id,
        )
        return submission

    def resubmit(
        self,
        submission_id: str,
        new_asset_ref: str,
        *,
        expected_version: int | None = None,
    ) -> Submission:
        """Upload a revised asset after a revision request.

        Repeating the call with the same asset is a no-op.  ``revisions_used``
        is never reset.
        """
        if not new_asset_ref.strip():
            raise ValidationError("new_asset_ref is required")
        submission = self._load(submission_id, expected_version)
        if submission.status == S.SUBMITTED and submission.asset_ref == new_asset_ref:
            return submission
        updated = self._transition(submission, S.SUBMITTED, asset_ref=new_asset_ref)
        return updated

    def review(
        self,
        submission_id: str,
        approved: bool,
        feedback: str = "",
        issues: Iterable[str] = (),
        *,
        amount: Decimal | int | str | None = None,
        reviewer: str = "brand",
        expected_version: int | None = None,
    ) -> Submission:
        """Apply a brand review decision.

        Approval appends the review, attaches an affiliate link for
        affiliate-linked projects, and initiates payment for ``amount`` when
        one is given.  Rejection consumes one revision.

        Raises:
            RevisionLimitExceeded: Rejecting with no revisions left.
            ValidationError: Rejecting without feedback or issues.
            StateConflictError: The submission is not awaiting review.
            PaymentInitiationFailed: Approval committed but the payment intent
                could not be created; ``exc.submission`` is the approved
                submission and ``initiate_payment`` may be retried.
        """
        submission = self._load(submission_id, expected_version)
        if approved and amount is not None:
            amount = parse_amount(amount)
        feedback = feedback.strip()
        issue_set = {i.strip() for i in issues if i and i.strip()}

        if approved:
            record = ReviewRecord(
                submission_id=submission.id,
                approved=True,
                feedback=feedback,
                issues=issue_set,
                reviewer=reviewer,
                revision_number=submission.revisions_used,
            )
            check_transition(submission.status, S.APPROVED, submission.content_distribution_model)
            project = self.repository.get_project(submission.project_id)
            link = self.proofs.affiliate_link(submission, project)
            updated = self._transition(
                submission,
                S.APPROVED,
                review=record,
                affiliate_link=link or submission.affiliate_link,
            )
            self._notify(updated, "Your submission was approved.")
            if amount is None:
                return updated
            try:
                return self._attach_payment(updated, amount)
            except PaymentInitiationFailed as exc:
                exc.submission = self.repository.get(updated.id) or updated
                raise

        ledger = self._ledger_for(submission)
        if not ledger.can_reject(submission.max_revisions):
            raise RevisionLimitExceeded(submission.id, submission.max_revisions)
        if not feedback and not issue_set:
            raise ValidationError("A revision request needs feedback or at least one issue")

        record = ReviewRecord(
            submission_id=submission.id,
            approved=False,
            feedback=feedback,
            issues=issue_set,
            reviewer=reviewer,
            revision_number=submission.revisions_used + 1,
        )
        updated = self._transition(
            submission,
            S.REVISION_REQUESTED,
            review=record,
            revisions_used=submission.revisions_used + 1,
        )
        self._notify(
            updated,
            f"Revision requested ({updated.revisions_used}/{updated.max_revisions}): "
            + RevisionLedger.format_entry(record),
        )
        return updated

    # ── Proof track ──────────────────────────────────────────────

    def request_proof(
        self, submission_id: str, *, expected_version: int | None = None
    ) -> ProofRequestResult:
        """Ask the creator for the distribution proof and try to fetch it at once.

        Only valid from ``approved`` on gated models.
        """
        submission = self._load(submission_id, expected_version)
        self._require_gated(submission)
        if submission.status != S.APPROVED:
            raise StateConflictError(
                f"Proof can only be requested once approved (is {submission.status.value})",
                current=submission.status.value,
            )
        updated = self._transition(
            submission,
            S.PROOF_REQUESTED,
            proof=None,
            fetch_epoch=submission.fetch_epoch + 1,
        )
        label = self.proofs.strategy_for(updated.content_distribution_model).label
        self._notify(updated, f"Please submit your {label}.")
        outcome = self.proofs.request_and_try_fetch(updated)
        return self._apply_fetch(updated, outcome)

    def poll_proof(self, submission_id: str) -> ProofRequestResult:
        """Retry the fetch for a submission waiting on its proof."""
        submission = self._load(submission_id)
        self._require_gated(submission)
        if submission.status != S.PROOF_REQUESTED:
            raise StateConflictError(
                f"No proof outstanding for {submission_id} (is {submission.status.value})",
                current=submission.status.value,
            )
        outcome = self.proofs.fetch(submission)
        return self._apply_fetch(submission, outcome)

    def _apply_fetch(self, submission: Submission, outcome: ProofFetchOutcome) -> ProofRequestResult:
        if outcome.received is None:
            return Requested(submission=submission)
        updated = self.record_fetched_proof(submission.id, outcome.received, outcome.epoch)
        if updated.status == S.PROOF_RECEIVED and updated.proof == outcome.received:
            return ReceivedWithProof(submission=updated, proof=outcome.received)
        return Requested(submission=updated)

    def record_fetched_proof(self, submission_id: str, proof: str, epoch: int) -> Submission:
        """Apply a fetch result that arrived asynchronously.

        Results from an older fetch epoch, or arriving when no proof is
        outstanding, are discarded and the submission is returned unchanged.
        """
        submission = self._load(submission_id)
        self._require_gated(submission)
        if epoch != submission.fetch_epoch or submission.status != S.PROOF_REQUESTED:
            logger.warning(
                "Discarding stale proof for %s (epoch %d, current %d, status %s)",
                submission_id,
                epoch,
                submission.fetch_epoch,
                submission.status.value,
            )
            return submission
        if not proof or not proof.strip():
            return submission
        return self._receive(submission, proof.strip())

    def submit_proof(
        self,
        submission_id: str,
        proof: str,
        *,
        expected_version: int | None = None,
    ) -> Submission:
        """Creator hands in the Spark code or posted link directly."""
        if not proof or not proof.strip():
            raise ValidationError("Proof must not be empty")
        submission = self._load(submission_id, expected_version)
        self._require_gated(submission)
        return self._receive(submission, proof.strip())

    def _receive(self, submission: Submission, proof: str) -> Submission:
        updated = self._transition(submission, S.PROOF_RECEIVED, proof=proof)
        label = self.proofs.strategy_for(updated.content_distribution_model).label
        self._notify(updated, f"Your {label} was received and is awaiting verification.")
        return updated

    def verify_proof(
        self,
        submission_id: str,
        *,
        verified_by: str = "brand",
        expected_version: int | None = None,
    ) -> Submission:
        """Record the brand's confirmation of the proof; the asset becomes downloadable."""
        submission = self._load(submission_id, expected_version)
        self._require_gated(submission)
        check_transition(submission.status, S.PROOF_VERIFIED, submission.content_distribution_model)
        if not self.proofs.verify(submission, submission.proof or ""):
            label = self.proofs.strategy_for(submission.content_distribution_model).label
            raise ValidationError(f"{label} {submission.proof!r} failed verification")

        updated = self._transition(submission, S.PROOF_VERIFIED)
        logger.info("Proof for %s verified by %s", updated.id, verified_by)
        self._notify(updated, "Your proof was verified. The asset is ready for download.")
        return self._catch_up_payment(updated)

    def request_new_proof(
        self, submission_id: str, *, expected_version: int | None = None
    ) -> Submission:
        """Discard the held proof and ask again.

        Bumps the fetch epoch so any fetch still in flight is ignored when it
        lands.
        """
        submission = self._load(submission_id, expected_version)
        self._require_gated(submission)
        if submission.status not in (S.PROOF_REQUESTED, S.PROOF_RECEIVED):
            raise StateConflictError(
                f"Cannot request a new proof while {submission.status.value}",
                current=submission.status.value,
            )
        self.proofs.discard(submission)
        updated = self._transition(
            submission,
            S.PROOF_REQUESTED,
            proof=None,
            fetch_epoch=submission.fetch_epoch + 1,
        )
        label = self.proofs.strategy_for(updated.content_distribution_model).label
        self._notify(updated, f"Please submit a new {label}.")
        return updated

    # ── Payment track ────────────────────────────────────────────

    def initiate_payment(
        self,
        submission_id: str,
        amount: Decimal | int | str,
        *,
        expected_version: int | None = None,
    ) -> Submission:
        """Create (or re-attach) the payment intent for an approved submission."""
        value = parse_amount(amount)
        submission = self._load(submission_id, expected_version)
        if submission.status not in _PAYABLE_STATUSES:
            raise StateConflictError(
                f"Cannot initiate payment while {submission.status.value}",
                current=submission.status.value,
            )
        return self._attach_payment(submission, value)

    def _attach_payment(self, submission: Submission, amount: Decimal | int | str) -> Submission:
        intent = self.payments.initiate(submission.id, amount)
        if submission.payment_intent_id == intent.id:
            return submission
        updated = submission.model_copy(update={"payment_intent_id": intent.id}, deep=True)
        updated = self._write(submission, updated)
        logger.info("Submission %s attached to payment intent %s", updated.id, intent.id)
        return updated

    def _active_intent_status(self, submission: Submission) -> PaymentIntentStatus:
        if not submission.payment_intent_id:
            raise StateConflictError(
                f"Submission {submission.id} has no payment intent",
                current=submission.status.value,
            )
        intent = self.payments.get(submission.payment_intent_id)
        if intent is None:
            raise StateConflictError(
                f"Payment intent {submission.payment_intent_id} is missing",
                current=submission.status.value,
            )
        return intent.status

    def _proof_track_done(self, submission: Submission) -> bool:
        resting = proof_track_resting_state(submission.content_distribution_model)
        return STATUS_RANK[submission.status] >= STATUS_RANK[resting]

    def mark_awaiting_payment(
        self, submission_id: str, *, expected_version: int | None = None
    ) -> Submission:
        """Checkout is in flight for the submission's intent."""
        submission = self._load(submission_id, expected_version)
        if self._active_intent_status(submission) != PaymentIntentStatus.PENDING:
            return submission
        if submission.status in (S.AWAITING_PAYMENT, S.PAYMENT_CONFIRMED):
            return submission
        if not self._proof_track_done(submission):
            logger.info("Payment for %s in flight before proof verified", submission_id)
            return submission
        return self._transition(submission, S.AWAITING_PAYMENT)

    def confirm_payment(
        self, submission_id: str, *, expected_version: int | None = None
    ) -> Submission:
        """The submission's intent was confirmed by the processor."""
        submission = self._load(submission_id, expected_version)
        if self._active_intent_status(submission) != PaymentIntentStatus.CONFIRMED:
            raise StateConflictError(
                f"Payment intent {submission.payment_intent_id} is not confirmed",
                current=submission.status.value,
            )
        if submission.status == S.PAYMENT_CONFIRMED:
            return submission
        if not self._proof_track_done(submission):
            logger.info("Payment for %s confirmed before proof verified", submission_id)
            return submission
        updated = self._transition(submission, S.PAYMENT_CONFIRMED)
        self._notify(updated, "Payment for your submission was confirmed.")
        return updated

    def fail_payment(
        self, submission_id: str, *, expected_version: int | None = None
    ) -> Submission:
        """Detach a failed intent so payment can be initiated again."""
        submission = self._load(submission_id, expected_version)
        if self._active_intent_status(submission) != PaymentIntentStatus.FAILED:
            raise StateConflictError(
                f"Payment intent {submission.payment_intent_id} has not failed",
                current=submission.status.value,
            )
        if submission.status == S.AWAITING_PAYMENT:
            resting = proof_track_resting_state(submission.content_distribution_model)
            return self._transition(submission, resting, payment_intent_id=None)
        updated = submission.model_copy(update={"payment_intent_id": None}, deep=True)
        return self._write(submission, updated)

    def _catch_up_payment(self, submission: Submission) -> Submission:
        """Advance a just-verified submission if its payment is already ahead."""
        if not submission.payment_intent_id:
            return submission
        intent = self.payments.get(submission.payment_intent_id)
        if intent is None:
            return submission
        if intent.status == PaymentIntentStatus.CONFIRMED:
            return self._transition(submission, S.PAYMENT_CONFIRMED)
        if intent.status == PaymentIntentStatus.PENDING and intent.awaiting_confirmation:
            return self._transition(submission, S.AWAITING_PAYMENT)
        return submission

    def _on_payment_event(self, event: PaymentEvent) -> None:
        submission = self.repository.get(event.submission_id)
        if submission is None:
            logger.warning("Payment event for unknown submission %s", event.submission_id)
            return
        if submission.payment_intent_id != event.intent_id:
            logger.warning(
                "Ignoring %s for intent %s; submission %s is attached to %s",
                event.kind.value,
                event.intent_id,
                submission.id,
                submission.payment_intent_id,
            )
            return
        handlers: dict[PaymentEventKind, Callable[[str], Submission]] = {
            PaymentEventKind.AWAITING_CONFIRMATION: self.mark_awaiting_payment,
            PaymentEventKind.CONFIRMED: self.confirm_payment,
            PaymentEventKind.FAILED: self.fail_payment,
        }
        self._with_retry(handlers[event.kind], submission.id)

    @staticmethod
    def _with_retry(operation: Callable[[str], T], submission_id: str) -> T:
        for attempt in range(1, MAX_EVENT_ATTEMPTS + 1):
            try:
                return operation(submission_id)
            except ConcurrentModificationError:
                if attempt == MAX_EVENT_ATTEMPTS:
                    raise
                logger.info("Retrying payment event for %s (attempt %d)", submission_id, attempt)
        raise AssertionError("unreachable")

    # ── Reads ────────────────────────────────────────────────────

    def get(self, submission_id: str) -> Submission:
        return self._load(submission_id)

    def ledger(self, submission_id: str) -> RevisionLedger:
        return self._ledger_for(self._load(submission_id))

    def _ledger_for(self, submission: Submission) -> RevisionLedger:
        ledger = RevisionLedger(submission.id, self.repository.list_reviews(submission.id))
        if ledger.count() != submission.revisions_used:
            current = self.repository.get(submission.id)
            if current is not None and current.version != submission.version:
                raise ConcurrentModificationError(
                    submission.id, submission.version, current.version
                )
            raise StateConflictError(
                f"{submission.id} records {submission.revisions_used} revisions "
                f"but its ledger holds {ledger.count()}"
            )
        return ledger

    def get_history(self, submission_id: str) -> list[ReviewRecord]:
        """Review records for the submission, oldest first."""
        return self.ledger(submission_id).history()

    def get_status(self, submission_id: str) -> SubmissionStatusView:
        submission = self._load(submission_id)
        ledger = self._ledger_for(submission)
        return SubmissionStatusView(
            submission_id=submission.id,
            status=submission.status,
            wire_status=submission.wire_status,
            content_distribution_model=submission.content_distribution_model,
            revisions_used=submission.revisions_used,
            revisions_remaining=ledger.remaining(submission.max_revisions),
            ready_for_download=is_ready_for_download(submission),
            proof=submission.proof,
            affiliate_link=submission.affiliate_link,
            payment_intent_id=submission.payment_intent_id,
            version=submission.version,
        )
