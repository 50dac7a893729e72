"""Creator-posted link proof: the URL of the posted TikTok video."""

from __future__ import annotations

from urllib.parse import urlparse

from creatorflow.proof.sources import ProofSource
from creatorflow.proof.strategies.base import ProofStrategy
from creatorflow.submissions.models import ContentDistributionModel


class TikTokLinkStrategy(ProofStrategy):
    """Gate release on a posted-content link fetched from the proof source."""

    model = ContentDistributionModel.CREATOR_POSTED_LINK
    gates_release = True
    label = "TikTok link"

    def __init__(self, source: ProofSource) -> None:
        self.source = source

    def fetch(self, submission_id: str) -> str | None:
        return self.source.fetch_tiktok_link(submission_id)

    def verify(self, proof: str) -> bool:
        if not super().verify(proof):
            return False
        parsed = urlparse(proof.strip())
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
