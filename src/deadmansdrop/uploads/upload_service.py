"""Accept video uploads into escrow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Callable

from ..domain.deadlines import calculate_distribute_at
from ..domain.models import Video, utcnow
from ..exceptions import QuotaExceededError, UnsupportedMediaError
from ..repositories.user_repository import UserRepository
from ..repositories.video_repository import VideoRepository
from ..storage.accounting import StorageAccounting
from ..storage.file_store import PendingUpload, VideoFileStore

ALLOWED_VIDEO_MIME_TYPES = frozenset(
    {
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/x-matroska",
        "video/webm",
        "video/3gpp",
        "video/3gpp2",
        "video/mpeg",
        "video/ogg",
    }
)
ALLOWED_VIDEO_EXTENSIONS = frozenset(
    {".mp4", ".mov", ".avi", ".mkv", ".webm", ".3gp", ".3g2", ".mpeg", ".mpg", ".ogv"}
)
LOCATION_MAX_LENGTH = 50


def generate_title(location: str | None = None, *, now: datetime | None = None) -> str:
    """``Video YYYY-MM-DD HH:MM`` with an optional `` - <location>`` suffix."""
    moment = now or utcnow()
    title = f"Video {moment:%Y-%m-%d %H:%M}"
    if location and location.strip():
        title = f"{title} - {location.strip()[:LOCATION_MAX_LENGTH]}"
    return title


@dataclass(slots=True)
class UploadService:
    """Quota-checked upload pipeline.

    The quota is checked twice: with zero bytes before the request body is
    read (``ensure_quota_available``) and with the real size once the
    transfer is complete (``complete_upload``). Every failure after the file
    reached disk removes it again.
    """

    accounting: StorageAccounting
    video_repo: VideoRepository
    user_repo: UserRepository
    file_store: VideoFileStore
    max_file_size_bytes: int
    clock: Callable[[], datetime] = utcnow
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def ensure_quota_available(self, user_id: str) -> None:
        check = self.accounting.check_user_storage_quota(user_id, 0)
        if check.remaining_bytes <= 0:
            self.log.warning("upload.rejected.no_quota", extra={"user_id": user_id})
            raise QuotaExceededError(
                quota_bytes=check.quota_bytes,
                used_bytes=check.used_bytes,
                remaining_bytes=check.remaining_bytes,
            )

    def begin_upload(self, user_id: str, filename: str, content_type: str | None) -> PendingUpload:
        """Validate the declared type and open a size-capped sink for the bytes."""
        suffix = self.validate_type(filename, content_type)
        return self.file_store.open_upload(
            user_id, suffix=suffix, max_bytes=self.max_file_size_bytes
        )

    def complete_upload(
        self,
        user_id: str,
        pending: PendingUpload,
        *,
        content_type: str | None,
        title: str | None = None,
        location: str | None = None,
    ) -> Video:
        """Move the transferred file into place and create the ACTIVE video."""
        stored = pending.commit()
        try:
            self.accounting.check_user_storage_quota(user_id, stored.size_bytes).raise_if_exceeded(
                stored.size_bytes
            )
            user = self.user_repo.get_user(user_id)
            now = self.clock()
            video = self.video_repo.create_video(
                user_id=user_id,
                title=(title or "").strip() or generate_title(location, now=now),
                file_path=stored.relative_path,
                file_size_bytes=stored.size_bytes,
                mime_type=(content_type or "").lower(),
                distribute_at=calculate_distribute_at(user.default_timer_days, from_time=now),
                created_at=now,
            )
        except BaseException as exc:
            self.file_store.delete(stored.relative_path)
            self.log.warning(
                "upload.rejected.after_transfer",
                extra={"user_id": user_id, "size_bytes": stored.size_bytes, "error": repr(exc)},
            )
            raise

        self.log.info(
            "upload.accepted",
            extra={
                "user_id": user_id,
                "video_id": video.id,
                "size_bytes": video.file_size_bytes,
                "distribute_at": video.distribute_at.isoformat(),
            },
        )
        return video

    def validate_type(self, filename: str, content_type: str | None) -> str:
        mime = (content_type or "").lower()
        suffix = PurePosixPath(filename or "").suffix.lower()
        if mime not in ALLOWED_VIDEO_MIME_TYPES:
            self.log.warning("upload.rejected.mime_type", extra={"content_type": content_type})
            raise UnsupportedMediaError(f"unsupported content type: {content_type}")
        if suffix not in ALLOWED_VIDEO_EXTENSIONS:
            self.log.warning("upload.rejected.extension", extra={"filename": filename})
            raise UnsupportedMediaError(f"unsupported file extension: {suffix or '<none>'}")
        return suffix


__all__ = [
    "ALLOWED_VIDEO_EXTENSIONS",
    "ALLOWED_VIDEO_MIME_TYPES",
    "UploadService",
    "generate_title",
]
