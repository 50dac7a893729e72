"""Base class for per-model distribution proof strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from creatorflow.submissions.models import ContentDistributionModel


class ProofStrategy(ABC):
    """Base class for content-model-specific proof handling."""

    model: ContentDistributionModel
    gates_release: bool = False
    label: str = ""

    @abstractmethod
    def fetch(self, submission_id: str) -> str | None:
        """Ask upstream for the proof. None means not available yet."""

    def verify(self, proof: str) -> bool:
        """Record a brand's manual check of the proof. Default: any non-empty proof."""
        return bool(proof and proof.strip())
