"""Direct handoff: the brand receives the file, no proof exists."""

from __future__ import annotations

from creatorflow.errors import StateConflictError
from creatorflow.proof.strategies.base import ProofStrategy
from creatorflow.submissions.models import ContentDistributionModel


class NoOpStrategy(ProofStrategy):
    model = ContentDistributionModel.DIRECT_HANDOFF

    def fetch(self, submission_id: str) -> str | None:
        raise StateConflictError(
            f"Direct handoff submission {submission_id} has no distribution proof"
        )
