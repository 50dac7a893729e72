"""Tests for the submission repositories."""

import json
from decimal import Decimal
from pathlib import Path

import pytest
from creatorflow.errors import PersistenceError
from creatorflow.payments.models import PaymentIntentRecord
from creatorflow.submissions.models import (
    ContentDistributionModel,
    Project,
    ReviewRecord,
    Submission,
    SubmissionStatus,
)
from creatorflow.submissions.store import (
    STORE_FILENAME,
    InMemorySubmissionRepository,
    JsonSubmissionRepository,
)


def _make_submission(**kwargs: object) -> Submission:
    defaults: dict[str, object] = {
        "project_id": "proj-1",
        "creator_id": "creator-1",
        "content_distribution_model": ContentDistributionModel.DIRECT_HANDOFF,
        "asset_ref": "s3://bucket/video.mp4",
    }
    return Submission(**{**defaults, **kwargs})  # type: ignore[arg-type]


@pytest.fixture(params=["memory", "json"])
def repo(request, tmp_path: Path):
    if request.param == "memory":
        return InMemorySubmissionRepository()
    return JsonSubmissionRepository(tmp_path)


class TestCreateAndGet:
    def test_create_then_get(self, repo):
        sub = _make_submission()
        assert repo.create(sub)
        fetched = repo.get(sub.id)
        assert fetched is not None
        assert fetched.id == sub.id
        assert fetched.asset_ref == "s3://bucket/video.mp4"

    def test_create_duplicate_returns_false(self, repo):
        sub = _make_submission()
        assert repo.create(sub)
        assert not repo.create(sub)

    def test_get_missing(self, repo):
        assert repo.get("nope") is None

    def test_returned_copies_are_detached(self, repo):
        sub = _make_submission()
        repo.create(sub)
        fetched = repo.get(sub.id)
        fetched.asset_ref = "mutated"
        assert repo.get(sub.id).asset_ref == "s3://bucket/video.mp4"

    def test_list_filters_by_project(self, repo):
        repo.create(_make_submission())
        repo.create(_make_submission(project_id="proj-2"))
        assert len(repo.list_submissions()) == 2
        assert [s.project_id for s in repo.list_submissions("proj-2")] == ["proj-2"]


class TestPutIfVersion:
    def test_matching_version_writes(self, repo):
        sub = _make_submission()
        repo.create(sub)
        updated = sub.model_copy(update={"status": SubmissionStatus.APPROVED, "version": 2})
        assert repo.put_if_version(updated, 1)
        assert repo.get(sub.id).status == SubmissionStatus.APPROVED

    def test_stale_version_rejected(self, repo):
        sub = _make_submission()
        repo.create(sub)
        repo.put_if_version(sub.model_copy(update={"version": 2}), 1)
        stale = sub.model_copy(update={"status": SubmissionStatus.APPROVED, "version": 2})
        assert not repo.put_if_version(stale, 1)
        assert repo.get(sub.id).status == SubmissionStatus.SUBMITTED

    def test_missing_submission_rejected(self, repo):
        assert not repo.put_if_version(_make_submission(), 1)

    def test_review_written_with_submission(self, repo):
        sub = _make_submission()
        repo.create(sub)
        review = ReviewRecord(submission_id=sub.id, approved=True)
        repo.put_if_version(sub.model_copy(update={"version": 2}), 1, review=review)
        assert [r.id for r in repo.list_reviews(sub.id)] == [review.id]

    def test_review_not_written_on_conflict(self, repo):
        sub = _make_submission()
        repo.create(sub)
        review = ReviewRecord(submission_id=sub.id, approved=True)
        assert not repo.put_if_version(sub, 7, review=review)
        assert repo.list_reviews(sub.id) == []


class TestIntentsAndProjects:
    def test_intents_by_submission(self, repo):
        intent = PaymentIntentRecord(id="pi_1", submission_id="sub-1", amount=Decimal("10"))
        repo.put_intent(intent)
        repo.put_intent(PaymentIntentRecord(id="pi_2", submission_id="sub-2", amount=Decimal("5")))
        assert repo.get_intent("pi_1").amount == Decimal("10")
        assert [i.id for i in repo.list_intents("sub-1")] == ["pi_1"]

    def test_projects(self, repo):
        project = Project(id="proj-1", content_distribution_model=ContentDistributionModel.SPARK_ADS)
        repo.put_project(project)
        assert repo.get_project("proj-1").content_distribution_model == ContentDistributionModel.SPARK_ADS
        assert repo.get_project("missing") is None


class TestJsonPersistence:
    def test_persists_to_disk(self, tmp_path: Path):
        repo = JsonSubmissionRepository(tmp_path)
        sub = _make_submission()
        repo.create(sub)

        data = json.loads((tmp_path / STORE_FILENAME).read_text(encoding="utf-8"))
        assert sub.id in data["submissions"]

    def test_reload_from_disk(self, tmp_path: Path):
        repo = JsonSubmissionRepository(tmp_path)
        sub = _make_submission()
        repo.create(sub)
        repo.append_review(ReviewRecord(submission_id=sub.id, approved=False, issues={"audio"}))
        repo.put_intent(PaymentIntentRecord(id="pi_1", submission_id=sub.id, amount=Decimal("12.50")))

        reloaded = JsonSubmissionRepository(tmp_path)
        assert reloaded.get(sub.id) is not None
        assert reloaded.list_reviews(sub.id)[0].issues == {"audio"}
        assert reloaded.get_intent("pi_1").amount == Decimal("12.50")

    def test_corrupt_file_starts_fresh(self, tmp_path: Path):
        (tmp_path / STORE_FILENAME).write_text("{not json", encoding="utf-8")
        repo = JsonSubmissionRepository(tmp_path)
        assert repo.list_submissions() == []

    def test_creates_data_dir(self, tmp_path: Path):
        repo = JsonSubmissionRepository(tmp_path / "nested" / "dir")
        repo.create(_make_submission())
        assert repo.path.exists()

    def test_failed_write_rolls_back(self, tmp_path: Path, monkeypatch):
        repo = JsonSubmissionRepository(tmp_path)

        def boom(data) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(repo, "_persist", boom)
        sub = _make_submission()
        with pytest.raises(PersistenceError):
            repo.create(sub)
        assert repo.get(sub.id) is None

    def test_failed_versioned_write_keeps_previous_state(self, tmp_path: Path, monkeypatch):
        repo = JsonSubmissionRepository(tmp_path)
        sub = _make_submission()
        repo.create(sub)

        def boom(data) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(repo, "_persist", boom)
        updated = sub.model_copy(update={"status": SubmissionStatus.APPROVED, "version": 2})
        review = ReviewRecord(submission_id=sub.id, approved=True)
        with pytest.raises(PersistenceError):
            repo.put_if_version(updated, 1, review=review)
        assert repo.get(sub.id).version == 1
        assert repo.list_reviews(sub.id) == []

    def test_write_leaves_untouched_entities_shared(self, tmp_path: Path):
        repo = JsonSubmissionRepository(tmp_path)
        sub = _make_submission()
        repo.create(sub)
        stored = repo._data.submissions[sub.id]
        repo.put_intent(PaymentIntentRecord(id="pi_1", submission_id=sub.id, amount=Decimal("5")))
        assert repo._data.submissions[sub.id] is stored
