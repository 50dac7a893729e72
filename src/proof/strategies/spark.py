"""Spark Ads proof: a provider-issued ad authorization code."""

from __future__ import annotations

from creatorflow.proof.sources import ProofSource
from creatorflow.proof.strategies.base import ProofStrategy
from creatorflow.submissions.models import ContentDistributionModel


class SparkCodeStrategy(ProofStrategy):
    """Gate release on a Spark ad code fetched from the proof source."""

    model = ContentDistributionModel.SPARK_ADS
    gates_release = True
    label = "spark code"

    def __init__(self, source: ProofSource) -> None:
        self.source = source

    def fetch(self, submission_id: str) -> str | None:
        return self.source.fetch_spark_code(submission_id)
