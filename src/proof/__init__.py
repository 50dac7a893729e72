"""Distribution proof — per-model strategies for proving content went live."""

from creatorflow.proof.coordinator import DistributionProofCoordinator, ProofFetchOutcome
from creatorflow.proof.sources import (
    HttpProofSource,
    InboxProofSource,
    ProofSource,
    ProofSourceConfig,
)
from creatorflow.proof.strategies import ProofStrategy, create_strategy

__all__ = [
    "DistributionProofCoordinator",
    "HttpProofSource",
    "InboxProofSource",
    "ProofFetchOutcome",
    "ProofSource",
    "ProofSourceConfig",
    "ProofStrategy",
    "create_strategy",
]
