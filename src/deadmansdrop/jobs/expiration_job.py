"""Daily sweep deleting videos whose retention window has elapsed."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from ..domain.models import ExpirationCandidate, utcnow
from ..exceptions import describe_error
from .results import ExpirationJobResult, VideoItemError

logger = logging.getLogger(__name__)


class ExpirationStore(Protocol):
    def list_due_for_expiration(self, reference_time: datetime) -> list[ExpirationCandidate]: ...

    def expire_video(self, candidate: ExpirationCandidate, *, expired_at: datetime) -> bool: ...


class FileRemover(Protocol):
    def delete(self, relative_path: str) -> bool: ...


def process_expiration(
    store: ExpirationStore,
    files: FileRemover,
    *,
    reference_time: datetime | None = None,
) -> ExpirationJobResult:
    """Delete the file, mark EXPIRED and release the owner's bytes.

    A file that is already gone is only a warning. The status change and the
    storage decrement commit together; if either fails the video counts as
    failed and contributes nothing to ``bytes_freed``.
    """
    current = reference_time or utcnow()
    result = ExpirationJobResult()
    logger.info("jobs.expiration.started", extra={"reference_time": current.isoformat()})

    try:
        due = store.list_due_for_expiration(current)
    except Exception:
        logger.exception("jobs.expiration.query_failed")
        raise

    result.processed = len(due)
    if not due:
        logger.info("jobs.expiration.nothing_due")
        return result

    for video in due:
        try:
            if not files.delete(video.file_path):
                logger.warning(
                    "jobs.expiration.file_missing",
                    extra={"video_id": video.video_id, "path": video.file_path},
                )
            expired = store.expire_video(video, expired_at=utcnow())
        except Exception as exc:
            result.failed += 1
            result.errors.append(VideoItemError(video_id=video.video_id, error=describe_error(exc)))
            logger.error(
                "jobs.expiration.item_failed",
                extra={"video_id": video.video_id, "title": video.title, "error": describe_error(exc)},
            )
            continue

        if not expired:
            logger.info("jobs.expiration.item_already_expired", extra={"video_id": video.video_id})
            continue

        result.expired += 1
        result.bytes_freed += video.file_size_bytes
        logger.info(
            "jobs.expiration.item_expired",
            extra={
                "video_id": video.video_id,
                "user_id": video.user_id,
                "bytes_freed": video.file_size_bytes,
            },
        )

    logger.info(
        "jobs.expiration.completed",
        extra={
            "processed": result.processed,
            "expired": result.expired,
            "failed": result.failed,
            "bytes_freed": result.bytes_freed,
        },
    )
    return result


__all__ = ["ExpirationStore", "FileRemover", "process_expiration"]
