from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.deadmansdrop.domain.models import DistributionCandidate, VideoStatus, utcnow
from src.deadmansdrop.jobs.distribution_job import process_distribution
from src.deadmansdrop.jobs.results import DistributionJobResult, VideoItemError
from src.deadmansdrop.repositories.video_repository import VideoRepository
from tests.helpers.escrow import build_session_factory, insert_user, insert_video, video_row

pytestmark = pytest.mark.unit

REFERENCE = datetime(2026, 1, 17, 10, 0, 0)


class DummyVideoRepo:
    def __init__(self, due: list[DistributionCandidate], failing: set[str] | None = None):
        self.due = due
        self.failing = failing or set()
        self.distributed: dict[str, tuple[datetime, datetime]] = {}

    def list_due_for_distribution(self, reference_time: datetime) -> list[DistributionCandidate]:
        return list(self.due)

    def mark_distributed(self, video_id, *, distributed_at, expires_at, reference_time) -> bool:
        if video_id in self.failing:
            raise RuntimeError("Database error")
        self.distributed[video_id] = (distributed_at, expires_at)
        return True


def candidate(video_id: str) -> DistributionCandidate:
    return DistributionCandidate(
        video_id=video_id,
        title=f"Title {video_id}",
        user_id="user-1",
        distribute_at=REFERENCE - timedelta(hours=1),
    )


def test_one_failing_item_does_not_abort_batch() -> None:
    repo = DummyVideoRepo([candidate("video-1"), candidate("video-2"), candidate("video-3")], {"video-2"})

    result = process_distribution(repo, reference_time=REFERENCE)

    assert result == DistributionJobResult(
        processed=3,
        distributed=2,
        failed=1,
        errors=[VideoItemError(video_id="video-2", error="Database error")],
    )
    assert set(repo.distributed) == {"video-1", "video-3"}


def test_expires_at_is_seven_days_after_distribution() -> None:
    repo = DummyVideoRepo([candidate("video-1")])

    process_distribution(repo, reference_time=REFERENCE)

    distributed_at, expires_at = repo.distributed["video-1"]
    assert expires_at - distributed_at == timedelta(days=7)


def test_nothing_due_returns_zeroed_result() -> None:
    result = process_distribution(DummyVideoRepo([]), reference_time=REFERENCE)

    assert result == DistributionJobResult()
    assert result.kind == "distribution"


def test_query_failure_propagates() -> None:
    class BrokenRepo(DummyVideoRepo):
        def list_due_for_distribution(self, reference_time):
            raise ConnectionError("database unavailable")

    with pytest.raises(ConnectionError):
        process_distribution(BrokenRepo([]), reference_time=REFERENCE)


def test_non_exception_message_is_stringified() -> None:
    class SilentError(Exception):
        def __str__(self) -> str:
            return ""

    class Repo(DummyVideoRepo):
        def mark_distributed(self, video_id, **kwargs):
            raise SilentError()

    result = process_distribution(Repo([candidate("video-1")]), reference_time=REFERENCE)

    assert result.errors == [VideoItemError(video_id="video-1", error="SilentError")]


def test_sweep_against_database_is_idempotent() -> None:
    session_factory = build_session_factory()
    user_id = insert_user(session_factory)
    now = utcnow()
    due_id = insert_video(session_factory, user_id=user_id, distribute_at=now - timedelta(minutes=5))
    later_id = insert_video(session_factory, user_id=user_id, distribute_at=now + timedelta(days=1))
    repo = VideoRepository(session_factory)

    first = process_distribution(repo, reference_time=now)
    second = process_distribution(repo, reference_time=now)

    assert (first.processed, first.distributed, first.failed) == (1, 1, 0)
    assert second == DistributionJobResult()
    row = video_row(session_factory, due_id)
    assert row.status == VideoStatus.DISTRIBUTED.value
    assert row.expires_at - row.distributed_at == timedelta(days=7)
    assert video_row(session_factory, later_id).status == VideoStatus.ACTIVE.value
