"""Submission domain models — pure Pydantic v2 data types.

A Submission tracks one creator upload from first review through
proof-of-distribution and payment settlement.  Internal statuses are
model-agnostic; the wire vocabulary consumed by other systems folds the
distribution model into the proof statuses (``spark_*`` / ``tiktokLink_*``).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_MAX_REVISIONS = 3


def _now() -> datetime:
    return datetime.now(tz=UTC)


def new_id() -> str:
    return uuid.uuid4().hex


class ContentDistributionModel(StrEnum):
    """How a project's content reaches the target platform."""

    DIRECT_HANDOFF = "direct_handoff"
    SPARK_ADS = "spark_ads"
    CREATOR_POSTED_LINK = "creator_posted_link"
    AFFILIATE_LINKED = "affiliate_linked"

    @property
    def requires_proof(self) -> bool:
        """Whether release of the asset is gated on a distribution proof."""
        return self in (
            ContentDistributionModel.SPARK_ADS,
            ContentDistributionModel.CREATOR_POSTED_LINK,
        )


class SubmissionStatus(StrEnum):
    """Lifecycle status of a submission."""

    SUBMITTED = "submitted"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    PROOF_REQUESTED = "proof_requested"
    PROOF_RECEIVED = "proof_received"
    PROOF_VERIFIED = "proof_verified"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"


# Position along the happy path; used for "status >= X" checks.
STATUS_RANK: dict[SubmissionStatus, int] = {
    SubmissionStatus.REVISION_REQUESTED: 0,
    SubmissionStatus.SUBMITTED: 0,
    SubmissionStatus.APPROVED: 1,
    SubmissionStatus.PROOF_REQUESTED: 2,
    SubmissionStatus.PROOF_RECEIVED: 3,
    SubmissionStatus.PROOF_VERIFIED: 4,
    SubmissionStatus.AWAITING_PAYMENT: 5,
    SubmissionStatus.PAYMENT_CONFIRMED: 6,
}

PROOF_STATUSES = frozenset(
    {
        SubmissionStatus.PROOF_REQUESTED,
        SubmissionStatus.PROOF_RECEIVED,
        SubmissionStatus.PROOF_VERIFIED,
    }
)


class WireStatus(StrEnum):
    """Status vocabulary shared with consuming systems. Must stay stable."""

    PENDING = "pending"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    SPARK_REQUESTED = "spark_requested"
    SPARK_RECEIVED = "spark_received"
    SPARK_VERIFIED = "spark_verified"
    TIKTOK_LINK_REQUESTED = "tiktokLink_requested"
    TIKTOK_LINK_RECEIVED = "tiktokLink_received"
    TIKTOK_LINK_VERIFIED = "tiktokLink_verified"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"


_WIRE_PREFIX: dict[ContentDistributionModel, str] = {
    ContentDistributionModel.SPARK_ADS: "spark",
    ContentDistributionModel.CREATOR_POSTED_LINK: "tiktokLink",
}

_PROOF_SUFFIX: dict[SubmissionStatus, str] = {
    SubmissionStatus.PROOF_REQUESTED: "requested",
    SubmissionStatus.PROOF_RECEIVED: "received",
    SubmissionStatus.PROOF_VERIFIED: "verified",
}

_PLAIN_WIRE: dict[SubmissionStatus, WireStatus] = {
    SubmissionStatus.SUBMITTED: WireStatus.PENDING,
    SubmissionStatus.REVISION_REQUESTED: WireStatus.REVISION_REQUESTED,
    SubmissionStatus.APPROVED: WireStatus.APPROVED,
    SubmissionStatus.AWAITING_PAYMENT: WireStatus.AWAITING_PAYMENT,
    SubmissionStatus.PAYMENT_CONFIRMED: WireStatus.PAYMENT_CONFIRMED,
}


def to_wire_status(
    status: SubmissionStatus, model: ContentDistributionModel
) -> WireStatus:
    """Translate an internal status into the wire vocabulary.

    Raises:
        ValueError: If a proof status is paired with a model that has no proof.
    """
    if status in _PLAIN_WIRE:
        return _PLAIN_WIRE[status]
    prefix = _WIRE_PREFIX.get(model)
    if prefix is None:
        raise ValueError(f"{model.value} submissions have no {status.value} state")
    return WireStatus(f"{prefix}_{_PROOF_SUFFIX[status]}")


def from_wire_status(value: str) -> SubmissionStatus:
    """Translate a wire status string back into an internal status."""
    wire = WireStatus(value)
    for status, plain in _PLAIN_WIRE.items():
        if plain == wire:
            return status
    _, _, suffix = wire.value.partition("_")
    for status, proof_suffix in _PROOF_SUFFIX.items():
        if proof_suffix == suffix:
            return status
    raise ValueError(f"Unknown wire status: {value!r}")


class Project(BaseModel):
    """The parts of a brand project the lifecycle depends on."""

    id: str
    brand_id: str = ""
    content_distribution_model: ContentDistributionModel
    max_revisions: int = Field(default=DEFAULT_MAX_REVISIONS, ge=0)
    product_link: str = ""


class Submission(BaseModel):
    """A creator's content submission for a project."""

    id: str = Field(default_factory=new_id)
    project_id: str
    creator_id: str
    content_distribution_model: ContentDistributionModel
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    revisions_used: int = Field(default=0, ge=0)
    max_revisions: int = Field(default=DEFAULT_MAX_REVISIONS, ge=0)
    asset_ref: str
    proof: str | None = None
    affiliate_link: str | None = None
    payment_intent_id: str | None = None
    fetch_epoch: int = 0
    version: int = 1
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def requires_proof(self) -> bool:
        return self.content_distribution_model.requires_proof

    @property
    def wire_status(self) -> WireStatus:
        return to_wire_status(self.status, self.content_distribution_model)

    @property
    def revisions_remaining(self) -> int:
        return max(self.max_revisions - self.revisions_used, 0)


class ReviewRecord(BaseModel):
    """One brand review decision, appended to the revision ledger."""

    id: str = Field(default_factory=new_id)
    submission_id: str
    approved: bool
    feedback: str = ""
    issues: set[str] = Field(default_factory=set)
    reviewer: str = "brand"
    revision_number: int = 0
    created_at: datetime = Field(default_factory=_now)


class SubmissionStatusView(BaseModel):
    """Read-only snapshot returned by ``get_status``."""

    submission_id: str
    status: SubmissionStatus
    wire_status: WireStatus
    content_distribution_model: ContentDistributionModel
    revisions_used: int
    revisions_remaining: int
    ready_for_download: bool
    proof: str | None = None
    affiliate_link: str | None = None
    payment_intent_id: str | None = None
    version: int
