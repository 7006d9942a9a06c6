"""Serve distributed videos by public token with HTTP range support."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from fastapi import status
from fastapi.responses import JSONResponse, StreamingResponse

from ..domain.models import VideoStatus
from ..repositories.video_repository import VideoRepository
from ..storage.file_store import VideoFileStore

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
# ASCII digits only; "²" passes str.isdigit() but not int()
_RANGE_PATTERN = re.compile(r"bytes=(\d+)-(\d*)", re.ASCII)


@dataclass(slots=True, frozen=True)
class ByteRange:
    start: int
    end: int

    @property
    def chunk_size(self) -> int:
        return self.end - self.start + 1


def parse_range_header(header: str, file_size: int) -> ByteRange | None:
    """Parse ``bytes=start-end`` or ``bytes=start-``.

    Returns ``None`` whenever the range cannot be served against
    ``file_size``; suffix ranges (``bytes=-N``) and multi-range requests are
    not supported.
    """
    match = _RANGE_PATTERN.fullmatch(header)
    if match is None:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else file_size - 1
    if start >= file_size or end < start or end >= file_size:
        return None
    return ByteRange(start=start, end=end)


def sanitize_filename(title: str, file_path: str) -> str:
    """``title`` with unsafe characters replaced, plus the stored extension."""
    return _UNSAFE_FILENAME_CHARS.sub("_", title) + PurePosixPath(file_path).suffix


@dataclass(slots=True)
class PublicVideoService:
    """Gate delivery on lifecycle status and stream the stored file.

    Unknown tokens and videos that are not distributed yet share one 404
    body so a token never reveals whether a video exists.
    """

    video_repo: VideoRepository
    file_store: VideoFileStore
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def open_video(self, token: str, range_header: str | None = None) -> StreamingResponse | JSONResponse:
        try:
            video = self.video_repo.find_by_public_token(token)
        except Exception:
            self.log.exception("public.video.lookup_failed")
            return self._error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error")

        if video is not None and video.status is VideoStatus.EXPIRED:
            self.log.debug("public.video.expired", extra={"video_id": video.id})
            return self._error(status.HTTP_410_GONE, "video_expired")

        if video is None or not video.is_servable:
            self.log.debug(
                "public.video.not_found",
                extra={"status": video.status.value if video else None},
            )
            return self._error(status.HTTP_404_NOT_FOUND, "video_not_found")

        try:
            if not self.file_store.exists(video.file_path):
                self.log.error(
                    "public.video.missing_file",
                    extra={"video_id": video.id, "path": video.file_path},
                )
                return self._error(status.HTTP_404_NOT_FOUND, "video_not_found")
            file_size = self.file_store.size(video.file_path)
        except Exception:
            self.log.exception("public.video.stat_failed", extra={"video_id": video.id})
            return self._error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error")

        headers = {
            "Accept-Ranges": "bytes",
            "Content-Disposition": f'inline; filename="{sanitize_filename(video.title, video.file_path)}"',
        }
        status_code = status.HTTP_200_OK
        byte_range = ByteRange(start=0, end=file_size - 1)
        if range_header:
            parsed = parse_range_header(range_header, file_size)
            if parsed is None:
                self.log.info(
                    "public.video.range_not_satisfiable",
                    extra={"video_id": video.id, "range": range_header, "file_size": file_size},
                )
                return self._error(
                    status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
                    "range_not_satisfiable",
                    headers={"Content-Range": f"bytes */{file_size}"},
                )
            byte_range = parsed
            status_code = status.HTTP_206_PARTIAL_CONTENT
            headers["Content-Range"] = f"bytes {parsed.start}-{parsed.end}/{file_size}"
        headers["Content-Length"] = str(byte_range.chunk_size)

        try:
            chunks = (
                self.file_store.open_range(video.file_path, byte_range.start, byte_range.end)
                if file_size
                else iter(())
            )
        except Exception:
            self.log.exception("public.video.open_failed", extra={"video_id": video.id})
            return self._error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error")

        self.log.info(
            "public.video.streaming",
            extra={
                "video_id": video.id,
                "file_size": file_size,
                "start": byte_range.start,
                "end": byte_range.end,
            },
        )
        return StreamingResponse(
            self._guard_stream(chunks, video.id),
            status_code=status_code,
            media_type=video.mime_type,
            headers=headers,
        )

    def _guard_stream(self, chunks: Iterator[bytes], video_id: str) -> Iterator[bytes]:
        # headers are already on the wire once iteration starts: end the body instead of replying again
        try:
            yield from chunks
        except OSError:
            self.log.exception("public.video.stream_failed", extra={"video_id": video_id})

    @staticmethod
    def _error(
        status_code: int,
        failure_reason: str,
        headers: dict[str, str] | None = None,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"status": "error", "failure_reason": failure_reason},
            headers=headers,
        )


__all__ = ["ByteRange", "PublicVideoService", "parse_range_header", "sanitize_filename"]
