"""Append-only revision ledger over a submission's review records."""

from __future__ import annotations

from collections.abc import Iterable

from creatorflow.submissions.models import ReviewRecord


class RevisionLedger:
    """Chronological review history for one submission.

    ``count()`` is the number of rejections, which is what
    ``Submission.revisions_used`` tracks.
    """

    def __init__(self, submission_id: str, records: Iterable[ReviewRecord] = ()) -> None:
        self.submission_id = submission_id
        self._records: list[ReviewRecord] = []
        for record in records:
            self.append(record)

    def append(self, record: ReviewRecord) -> None:
        if record.submission_id != self.submission_id:
            raise ValueError(
                f"Record for {record.submission_id} appended to ledger of {self.submission_id}"
            )
        self._records.append(record)
        self._records.sort(key=lambda r: r.created_at)

    def count(self) -> int:
        """Number of revision requests (rejections) recorded."""
        return sum(1 for r in self._records if not r.approved)

    def history(self) -> list[ReviewRecord]:
        """All review records, oldest first."""
        return list(self._records)

    def latest(self) -> ReviewRecord | None:
        return self._records[-1] if self._records else None

    def remaining(self, max_revisions: int) -> int:
        return max(max_revisions - self.count(), 0)

    def can_reject(self, max_revisions: int) -> bool:
        """Whether another revision request stays within ``max_revisions``."""
        return self.count() < max_revisions

    def __len__(self) -> int:
        return len(self._records)

    @staticmethod
    def format_entry(record: ReviewRecord) -> str:
        """Render one record as ``Revision #N — issues — feedback``."""
        if record.approved:
            head = "Approved"
        else:
            head = f"Revision #{record.revision_number}"
        parts = [head]
        if record.issues:
            parts.append(", ".join(sorted(record.issues)))
        if record.feedback:
            parts.append(record.feedback)
        return " — ".join(parts)
