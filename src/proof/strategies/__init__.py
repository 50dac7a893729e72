"""Proof strategy factory and registry."""

from __future__ import annotations

from creatorflow.proof.sources import ProofSource
from creatorflow.proof.strategies.base import ProofStrategy
from creatorflow.submissions.models import ContentDistributionModel


def create_strategy(
    model: ContentDistributionModel | str,
    *,
    source: ProofSource | None = None,
    utm_source: str | None = None,
) -> ProofStrategy:
    """Create the proof strategy for a content distribution model.

    Args:
        model: The submission's content distribution model.
        source: Required for models that fetch a proof (Spark ads, posted link).
        utm_source: Optional override for generated affiliate links.

    Returns:
        A ProofStrategy instance for the model.

    Raises:
        ValueError: If the model is unknown or a required source is missing.
    """
    if isinstance(model, str):
        model = ContentDistributionModel(model)

    from creatorflow.proof.strategies.affiliate import AffiliateLinkStrategy
    from creatorflow.proof.strategies.noop import NoOpStrategy
    from creatorflow.proof.strategies.spark import SparkCodeStrategy
    from creatorflow.proof.strategies.tiktok import TikTokLinkStrategy

    if model is ContentDistributionModel.DIRECT_HANDOFF:
        return NoOpStrategy()
    if model is ContentDistributionModel.AFFILIATE_LINKED:
        return AffiliateLinkStrategy(utm_source) if utm_source else AffiliateLinkStrategy()
    if model.requires_proof and source is None:
        raise ValueError(f"{model.value} requires a proof source")
    if model is ContentDistributionModel.SPARK_ADS:
        return SparkCodeStrategy(source)
    if model is ContentDistributionModel.CREATOR_POSTED_LINK:
        return TikTokLinkStrategy(source)

    raise ValueError(f"Unknown content distribution model: {model!r}")


__all__ = ["ProofStrategy", "create_strategy"]
