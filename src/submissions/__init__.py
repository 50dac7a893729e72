"""Submission domain — lifecycle models, storage, ledger and engine.

The engine is the single writer of submission state; everything else in
this package is data types and the storage boundary it writes through.
"""

from creatorflow.submissions.models import (
    ContentDistributionModel,
    Project,
    ReviewRecord,
    Submission,
    SubmissionStatus,
    SubmissionStatusView,
    WireStatus,
    from_wire_status,
    to_wire_status,
)
from creatorflow.submissions.ledger import RevisionLedger
from creatorflow.submissions.store import (
    InMemorySubmissionRepository,
    JsonSubmissionRepository,
    SubmissionRepository,
)
from creatorflow.submissions.engine import (
    ProofRequestResult,
    ReceivedWithProof,
    Requested,
    SubmissionLifecycleEngine,
    is_ready_for_download,
)

__all__ = [
    "ContentDistributionModel",
    "InMemorySubmissionRepository",
    "JsonSubmissionRepository",
    "Project",
    "ProofRequestResult",
    "ReceivedWithProof",
    "Requested",
    "ReviewRecord",
    "RevisionLedger",
    "Submission",
    "SubmissionLifecycleEngine",
    "SubmissionRepository",
    "SubmissionStatus",
    "SubmissionStatusView",
    "WireStatus",
    "from_wire_status",
    "is_ready_for_download",
    "to_wire_status",
]
