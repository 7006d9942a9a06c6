from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.deadmansdrop.delivery.public_video_router import build_public_video_router
from src.deadmansdrop.delivery.public_video_service import PublicVideoService
from src.deadmansdrop.domain.models import VideoStatus, utcnow
from src.deadmansdrop.repositories.video_repository import VideoRepository
from src.deadmansdrop.storage.file_store import VideoFileStore
from tests.helpers.escrow import build_session_factory, insert_user, insert_video

pytestmark = pytest.mark.unit

PAYLOAD = bytes(range(256)) * 40  # 10240 bytes


def build_client(tmp_path: Path, session_factory) -> TestClient:
    service = PublicVideoService(
        video_repo=VideoRepository(session_factory),
        file_store=VideoFileStore(root=tmp_path, chunk_size=4096),
    )
    app = FastAPI()
    app.include_router(build_public_video_router(service))
    return TestClient(app)


def seed(tmp_path: Path, session_factory, status: VideoStatus, *, write_file: bool = True) -> str:
    user_id = insert_user(session_factory)
    if write_file:
        (tmp_path / "owner").mkdir(exist_ok=True)
        (tmp_path / "owner" / "clip.mp4").write_bytes(PAYLOAD)
    now = utcnow()
    insert_video(
        session_factory,
        user_id=user_id,
        status=status,
        distribute_at=now - timedelta(days=1),
        distributed_at=now - timedelta(days=1) if status is not VideoStatus.ACTIVE else None,
        expires_at=now + timedelta(days=6) if status is not VideoStatus.ACTIVE else None,
        file_path="owner/clip.mp4",
        file_size_bytes=len(PAYLOAD),
        title="Last Words",
        public_token="public-token",
    )
    return "public-token"


def test_full_download_of_distributed_video(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}")

    assert response.status_code == 200
    assert response.content == PAYLOAD
    assert response.headers["content-length"] == str(len(PAYLOAD))
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-type"] == "video/mp4"
    assert response.headers["content-disposition"] == 'inline; filename="Last_Words.mp4"'


def test_range_request_returns_partial_content(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}", headers={"Range": "bytes=0-1023"})

    assert response.status_code == 206
    assert response.content == PAYLOAD[:1024]
    assert response.headers["content-range"] == f"bytes 0-1023/{len(PAYLOAD)}"
    assert response.headers["content-length"] == "1024"


def test_open_ended_range_spans_chunks(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}", headers={"Range": "bytes=100-"})

    assert response.status_code == 206
    assert response.content == PAYLOAD[100:]
    assert response.headers["content-range"] == f"bytes 100-{len(PAYLOAD) - 1}/{len(PAYLOAD)}"


def test_unsatisfiable_range(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}", headers={"Range": f"bytes={len(PAYLOAD)}-"})

    assert response.status_code == 416
    assert response.headers["content-range"] == f"bytes */{len(PAYLOAD)}"
    assert response.json() == {"status": "error", "failure_reason": "range_not_satisfiable"}


def test_unknown_token_is_not_found(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    client = build_client(tmp_path, session_factory)

    response = client.get("/api/public/videos/nope")

    assert response.status_code == 404
    assert response.json() == {"status": "error", "failure_reason": "video_not_found"}


@pytest.mark.parametrize("status", [VideoStatus.PENDING, VideoStatus.ACTIVE])
def test_undistributed_video_looks_unknown(tmp_path: Path, status: VideoStatus) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, status)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}")

    assert response.status_code == 404
    assert response.json()["failure_reason"] == "video_not_found"


def test_expired_video_is_gone(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.EXPIRED, write_file=False)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}")

    assert response.status_code == 410
    assert response.json() == {"status": "error", "failure_reason": "video_expired"}


def test_distributed_video_with_missing_file(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED, write_file=False)
    client = build_client(tmp_path, session_factory)

    response = client.get(f"/api/public/videos/{token}")

    assert response.status_code == 404
    assert response.json()["failure_reason"] == "video_not_found"


def test_lookup_failure_is_internal_error(tmp_path: Path) -> None:
    class BrokenRepo:
        def find_by_public_token(self, token: str):
            raise RuntimeError("database unavailable")

    service = PublicVideoService(video_repo=BrokenRepo(), file_store=VideoFileStore(root=tmp_path))
    app = FastAPI()
    app.include_router(build_public_video_router(service))

    response = TestClient(app).get("/api/public/videos/any")

    assert response.status_code == 500
    assert response.json() == {"status": "error", "failure_reason": "internal_error"}


class StubFileStore:
    """File store double whose open or read can be made to fail."""

    def __init__(self, *, size: int, open_error: Exception | None = None, fail_after: int | None = None):
        self._size = size
        self.open_error = open_error
        self.fail_after = fail_after
        self.closed = False

    def exists(self, relative_path: str) -> bool:
        return True

    def size(self, relative_path: str) -> int:
        return self._size

    def open_range(self, relative_path: str, start: int, end: int):
        if self.open_error is not None:
            raise self.open_error
        return self._chunks(end - start + 1)

    def _chunks(self, length: int):
        try:
            sent = 0
            while sent < length:
                if self.fail_after is not None and sent >= self.fail_after:
                    raise OSError("device went away")
                chunk = b"a" * min(100, length - sent)
                sent += len(chunk)
                yield chunk
        finally:
            self.closed = True


def stub_client(session_factory, store: StubFileStore) -> TestClient:
    service = PublicVideoService(video_repo=VideoRepository(session_factory), file_store=store)
    app = FastAPI()
    app.include_router(build_public_video_router(service))
    return TestClient(app)


def test_open_failure_before_first_byte_is_internal_error(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED, write_file=False)
    client = stub_client(session_factory, StubFileStore(size=1000, open_error=PermissionError("denied")))

    response = client.get(f"/api/public/videos/{token}", headers={"Range": "bytes=0-499"})

    assert response.status_code == 500
    assert response.json() == {"status": "error", "failure_reason": "internal_error"}
    assert "content-range" not in response.headers


def test_read_failure_mid_stream_truncates_body(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    token = seed(tmp_path, session_factory, VideoStatus.DISTRIBUTED, write_file=False)
    store = StubFileStore(size=1000, fail_after=200)
    client = stub_client(session_factory, store)

    response = client.get(f"/api/public/videos/{token}", headers={"Range": "bytes=0-999"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 0-999/1000"
    assert response.content == b"a" * 200
    assert store.closed is True


def test_abandoned_range_iterator_releases_file_handle(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "owner").mkdir()
    (tmp_path / "owner" / "clip.mp4").write_bytes(PAYLOAD)
    store = VideoFileStore(root=tmp_path, chunk_size=1024)
    opened = []
    real_open = Path.open

    def tracking_open(self, *args, **kwargs):
        handle = real_open(self, *args, **kwargs)
        opened.append(handle)
        return handle

    monkeypatch.setattr(Path, "open", tracking_open)
    chunks = store.open_range("owner/clip.mp4", 0, len(PAYLOAD) - 1)
    assert next(chunks) == PAYLOAD[:1024]

    chunks.close()

    assert opened and opened[0].closed
