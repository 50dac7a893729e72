"""Error taxonomy for the submission lifecycle.

Every error raised by the engine, the coordinators, or a repository is a
``LifecycleError`` so request handlers can catch one base class and map
subclasses to responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from creatorflow.submissions.models import Submission


class LifecycleError(Exception):
    """Base error for the submission lifecycle."""


class ValidationError(LifecycleError):
    """Required input is missing or malformed."""


class StateConflictError(LifecycleError):
    """Operation invoked from a state that does not allow it."""

    def __init__(self, message: str, *, current: str | None = None) -> None:
        super().__init__(message)
        self.current = current


class RevisionLimitExceeded(LifecycleError):
    """Rejection attempted after every allowed revision was used.

    Fatal to the review attempt only; the submission can still be approved.
    """

    def __init__(self, submission_id: str, max_revisions: int) -> None:
        super().__init__(
            f"Maximum revisions ({max_revisions}) already used for {submission_id}"
        )
        self.submission_id = submission_id
        self.max_revisions = max_revisions


class ConcurrentModificationError(LifecycleError):
    """Version mismatch on a conditional write; reload and retry."""

    def __init__(self, submission_id: str, expected: int, actual: int | None) -> None:
        super().__init__(
            f"Submission {submission_id} changed concurrently "
            f"(expected version {expected}, found {actual})"
        )
        self.submission_id = submission_id
        self.expected = expected
        self.actual = actual


class PaymentProcessorError(LifecycleError):
    """The external payment processor rejected or failed a request."""


class PaymentInitiationFailed(LifecycleError):
    """Payment intent could not be created; retry ``initiate`` later.

    When raised after an approval, ``submission`` holds the committed,
    approved submission (still without a payment intent).
    """

    def __init__(self, message: str, *, submission: Submission | None = None) -> None:
        super().__init__(message)
        self.submission = submission


class ProofNotFoundYet(LifecycleError):
    """A proof fetch found nothing upstream yet. A valid outcome, not a failure."""


class PersistenceError(LifecycleError):
    """Repository I/O failed; nothing was committed."""


class NotFoundError(LifecycleError, LookupError):
    """Base for missing entities."""


class SubmissionNotFoundError(NotFoundError):
    """No submission with the given id."""


class ProjectNotFoundError(NotFoundError):
    """No project with the given id."""


class PaymentIntentNotFoundError(NotFoundError):
    """No payment intent with the given id."""
