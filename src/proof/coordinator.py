"""Distribution proof coordinator.

Selects the proof strategy for a submission's content distribution model and
runs the request/fetch/verify steps.  The coordinator never changes a
submission; it reports outcomes and the engine decides the transition.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from creatorflow.errors import ProofNotFoundYet, StateConflictError
from creatorflow.proof.sources import ProofSource
from creatorflow.proof.strategies import ProofStrategy, create_strategy
from creatorflow.proof.strategies.affiliate import AffiliateLinkStrategy
from creatorflow.submissions.models import (
    ContentDistributionModel,
    Project,
    Submission,
)

logger = logging.getLogger(__name__)


class ProofFetchOutcome(BaseModel):
    """Result of one fetch attempt, tagged with the epoch it was made under."""

    submission_id: str
    epoch: int
    requested: bool = False
    received: str | None = None


class DistributionProofCoordinator:
    """Per-model proof handling for submissions."""

    def __init__(self, source: ProofSource, *, utm_source: str | None = None) -> None:
        self.source = source
        self.utm_source = utm_source
        self._strategies: dict[ContentDistributionModel, ProofStrategy] = {}

    def strategy_for(self, model: ContentDistributionModel) -> ProofStrategy:
        if model not in self._strategies:
            self._strategies[model] = create_strategy(
                model, source=self.source, utm_source=self.utm_source
            )
        return self._strategies[model]

    def _require_gated(self, submission: Submission) -> ProofStrategy:
        strategy = self.strategy_for(submission.content_distribution_model)
        if not strategy.gates_release:
            raise StateConflictError(
                f"{submission.content_distribution_model.value} submissions "
                "do not use a distribution proof",
                current=submission.status.value,
            )
        return strategy

    def fetch(self, submission: Submission) -> ProofFetchOutcome:
        """Best-effort fetch under the submission's current fetch epoch."""
        strategy = self._require_gated(submission)
        try:
            received = strategy.fetch(submission.id)
        except ProofNotFoundYet as exc:
            logger.info("No %s yet for %s: %s", strategy.label, submission.id, exc)
            received = None
        if received is not None and not received.strip():
            received = None
        return ProofFetchOutcome(
            submission_id=submission.id,
            epoch=submission.fetch_epoch,
            received=received,
        )

    def request_and_try_fetch(self, submission: Submission) -> ProofFetchOutcome:
        """Mark the proof as requested and try an immediate fetch."""
        strategy = self._require_gated(submission)
        logger.info(
            "Requested %s for submission %s (epoch %d)",
            strategy.label,
            submission.id,
            submission.fetch_epoch,
        )
        outcome = self.fetch(submission)
        outcome.requested = True
        return outcome

    def discard(self, submission: Submission) -> None:
        """Drop any proof held upstream so a new request starts clean."""
        self._require_gated(submission)
        self.source.discard(submission.id)

    def verify(self, submission: Submission, proof: str) -> bool:
        """Record the brand's manual confirmation that the proof is correct."""
        strategy = self._require_gated(submission)
        return strategy.verify(proof)

    def affiliate_link(self, submission: Submission, project: Project | None) -> str | None:
        """Generate the affiliate link for affiliate-linked submissions, else None."""
        strategy = self.strategy_for(submission.content_distribution_model)
        if not isinstance(strategy, AffiliateLinkStrategy):
            return None
        product_link = project.product_link if project is not None else ""
        return strategy.generate_link(product_link, submission.creator_id, submission.id)
