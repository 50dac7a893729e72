"""Transition table for the submission state machine.

Edges tagged ``gated`` only apply to distribution models that require a
proof; edges tagged ``ungated`` only to models that do not.  Untagged edges
apply to every model.
"""

from __future__ import annotations

from enum import StrEnum

from creatorflow.errors import StateConflictError
from creatorflow.submissions.models import ContentDistributionModel, SubmissionStatus

S = SubmissionStatus


class Gate(StrEnum):
    ANY = "any"
    GATED = "gated"
    UNGATED = "ungated"


TRANSITIONS: dict[SubmissionStatus, dict[SubmissionStatus, Gate]] = {
    S.SUBMITTED: {
        S.APPROVED: Gate.ANY,
        S.REVISION_REQUESTED: Gate.ANY,
    },
    S.REVISION_REQUESTED: {
        S.SUBMITTED: Gate.ANY,
    },
    S.APPROVED: {
        S.PROOF_REQUESTED: Gate.GATED,
        S.AWAITING_PAYMENT: Gate.UNGATED,
        S.PAYMENT_CONFIRMED: Gate.UNGATED,
    },
    S.PROOF_REQUESTED: {
        S.PROOF_RECEIVED: Gate.GATED,
        S.PROOF_REQUESTED: Gate.GATED,
    },
    S.PROOF_RECEIVED: {
        S.PROOF_VERIFIED: Gate.GATED,
        S.PROOF_REQUESTED: Gate.GATED,
    },
    S.PROOF_VERIFIED: {
        S.AWAITING_PAYMENT: Gate.GATED,
        S.PAYMENT_CONFIRMED: Gate.GATED,
    },
    S.AWAITING_PAYMENT: {
        S.PAYMENT_CONFIRMED: Gate.ANY,
        S.APPROVED: Gate.UNGATED,
        S.PROOF_VERIFIED: Gate.GATED,
    },
    S.PAYMENT_CONFIRMED: {},
}


def can_transition(
    source: SubmissionStatus,
    target: SubmissionStatus,
    model: ContentDistributionModel,
) -> bool:
    gate = TRANSITIONS.get(source, {}).get(target)
    if gate is None:
        return False
    if gate is Gate.GATED:
        return model.requires_proof
    if gate is Gate.UNGATED:
        return not model.requires_proof
    return True


def check_transition(
    source: SubmissionStatus,
    target: SubmissionStatus,
    model: ContentDistributionModel,
) -> None:
    """Raise StateConflictError unless ``source -> target`` is legal for ``model``."""
    if not can_transition(source, target, model):
        raise StateConflictError(
            f"Illegal transition {source.value} -> {target.value} "
            f"for {model.value} submission",
            current=source.value,
        )


def proof_track_resting_state(model: ContentDistributionModel) -> SubmissionStatus:
    """The status a submission rests in once its proof track is complete."""
    if model.requires_proof:
        return S.PROOF_VERIFIED
    return S.APPROVED
