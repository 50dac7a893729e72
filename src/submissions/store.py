"""Submission repositories.

``SubmissionRepository`` is the storage boundary the engine and the payment
coordinator write through.  Every submission write is conditional on the
``version`` the caller read, and the check-and-write happens under a lock so
two writers holding the same version cannot both succeed.

Two implementations ship here: an in-memory repository for tests and
single-process use, and a JSON-backed one that persists all entities in a
single file, loaded on init and saved after every write.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from creatorflow.errors import PersistenceError
from creatorflow.payments.models import PaymentIntentRecord
from creatorflow.submissions.models import Project, ReviewRecord, Submission

logger = logging.getLogger(__name__)

STORE_FILENAME = ".creatorflow-store.json"


class SubmissionRepository(ABC):
    """Durable storage of submissions, review records, intents and projects."""

    # ── Submissions ──────────────────────────────────────────────

    @abstractmethod
    def get(self, submission_id: str) -> Submission | None:
        """Return a copy of the submission, or None if not found."""

    @abstractmethod
    def create(self, submission: Submission) -> bool:
        """Insert a new submission. Returns False if the id already exists."""

    @abstractmethod
    def put_if_version(
        self,
        submission: Submission,
        expected_version: int,
        *,
        review: ReviewRecord | None = None,
    ) -> bool:
        """Replace the stored submission if its version equals ``expected_version``.

        When ``review`` is given it is appended in the same atomic write.
        Returns False on a version conflict; nothing is written.
        """

    @abstractmethod
    def list_submissions(self, project_id: str | None = None) -> list[Submission]:
        """Return submissions, optionally filtered by project."""

    # ── Reviews ──────────────────────────────────────────────────

    @abstractmethod
    def append_review(self, record: ReviewRecord) -> None:
        """Append a review record."""

    @abstractmethod
    def list_reviews(self, submission_id: str) -> list[ReviewRecord]:
        """Return review records for a submission in insertion order."""

    # ── Payment intents ──────────────────────────────────────────

    @abstractmethod
    def get_intent(self, intent_id: str) -> PaymentIntentRecord | None:
        """Return a payment intent, or None if not found."""

    @abstractmethod
    def put_intent(self, intent: PaymentIntentRecord) -> None:
        """Insert or replace a payment intent."""

    @abstractmethod
    def list_intents(self, submission_id: str) -> list[PaymentIntentRecord]:
        """Return all intents ever created for a submission."""

    # ── Projects ─────────────────────────────────────────────────

    @abstractmethod
    def get_project(self, project_id: str) -> Project | None:
        """Return a project, or None if not found."""

    @abstractmethod
    def put_project(self, project: Project) -> None:
        """Insert or replace a project."""


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    submissions: dict[str, Submission] = Field(default_factory=dict)
    reviews: list[ReviewRecord] = Field(default_factory=list)
    intents: dict[str, PaymentIntentRecord] = Field(default_factory=dict)
    projects: dict[str, Project] = Field(default_factory=dict)


class InMemorySubmissionRepository(SubmissionRepository):
    """Repository held in process memory.

    Entities are copied on the way in and out so callers never share state
    with the store.  Subclasses persist by overriding ``_persist``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data = self._load()

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        return _StoreData()

    def _persist(self, data: _StoreData) -> None:
        """Flush ``data`` after a write. No-op in memory."""

    def _commit(self, mutate: Callable[[_StoreData], None]) -> None:
        """Apply ``mutate`` to a staged copy, persist it, then swap it in.

        Only the collections are copied; stored entities are replaced, never
        mutated in place.
        """
        with self._lock:
            staged = _StoreData.model_construct(
                submissions=dict(self._data.submissions),
                reviews=list(self._data.reviews),
                intents=dict(self._data.intents),
                projects=dict(self._data.projects),
            )
            mutate(staged)
            try:
                self._persist(staged)
            except OSError as exc:
                raise PersistenceError(f"Failed to persist store: {exc}") from exc
            self._data = staged

    # ── Submissions ──────────────────────────────────────────────

    def get(self, submission_id: str) -> Submission | None:
        stored = self._data.submissions.get(submission_id)
        return stored.model_copy(deep=True) if stored is not None else None

    def create(self, submission: Submission) -> bool:
        with self._lock:
            if submission.id in self._data.submissions:
                return False
            copy = submission.model_copy(deep=True)
            self._commit(lambda data: data.submissions.__setitem__(copy.id, copy))
            return True

    def put_if_version(
        self,
        submission: Submission,
        expected_version: int,
        *,
        review: ReviewRecord | None = None,
    ) -> bool:
        with self._lock:
            current = self._data.submissions.get(submission.id)
            if current is None or current.version != expected_version:
                return False
            copy = submission.model_copy(deep=True)

            def mutate(data: _StoreData) -> None:
                data.submissions[copy.id] = copy
                if review is not None:
                    data.reviews.append(review.model_copy(deep=True))

            self._commit(mutate)
            return True

    def list_submissions(self, project_id: str | None = None) -> list[Submission]:
        results = list(self._data.submissions.values())
        if project_id is not None:
            results = [s for s in results if s.project_id == project_id]
        return [s.model_copy(deep=True) for s in results]

    # ── Reviews ──────────────────────────────────────────────────

    def append_review(self, record: ReviewRecord) -> None:
        copy = record.model_copy(deep=True)
        self._commit(lambda data: data.reviews.append(copy))

    def list_reviews(self, submission_id: str) -> list[ReviewRecord]:
        return [
            r.model_copy(deep=True)
            for r in self._data.reviews
            if r.submission_id == submission_id
        ]

    # ── Payment intents ──────────────────────────────────────────

    def get_intent(self, intent_id: str) -> PaymentIntentRecord | None:
        stored = self._data.intents.get(intent_id)
        return stored.model_copy(deep=True) if stored is not None else None

    def put_intent(self, intent: PaymentIntentRecord) -> None:
        copy = intent.model_copy(deep=True)
        self._commit(lambda data: data.intents.__setitem__(copy.id, copy))

    def list_intents(self, submission_id: str) -> list[PaymentIntentRecord]:
        return [
            i.model_copy(deep=True)
            for i in self._data.intents.values()
            if i.submission_id == submission_id
        ]

    # ── Projects ─────────────────────────────────────────────────

    def get_project(self, project_id: str) -> Project | None:
        stored = self._data.projects.get(project_id)
        return stored.model_copy(deep=True) if stored is not None else None

    def put_project(self, project: Project) -> None:
        copy = project.model_copy(deep=True)
        self._commit(lambda data: data.projects.__setitem__(copy.id, copy))


class JsonSubmissionRepository(InMemorySubmissionRepository):
    """JSON-file-backed repository.

    Loads the store file on init and saves after every write.  A corrupt
    file is logged and replaced by an empty store.
    """

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / STORE_FILENAME
        super().__init__()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt submission store at %s, starting fresh", self._path)
            return _StoreData()

    def _persist(self, data: _StoreData) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(self._path)
