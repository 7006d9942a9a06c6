"""HTTP routes for video uploads."""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from ..api.payloads import serialize_video
from ..auth.auth_dependencies import require_user
from ..domain.models import User
from ..exceptions import (
    MalformedUploadError,
    PayloadTooLargeError,
    QuotaExceededError,
    UnsupportedMediaError,
)
from .multipart_stream import MultipartUploadReader
from .upload_service import UploadService

router = APIRouter(prefix="/api/videos", tags=["videos"])
logger = logging.getLogger(__name__)


def get_upload_service(request: Request) -> UploadService:
    try:
        return request.app.state.upload_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("UploadService is not configured") from exc


@router.post("/upload")
async def upload_video(
    request: Request,
    user: User = Depends(require_user),
    service: UploadService = Depends(get_upload_service),
) -> dict:
    """Multipart form with a ``video`` file and optional ``title``/``location``.

    The body is consumed here rather than through ``File()``/``Form()`` so the
    quota pre-check runs before the first body byte is read and the file size
    cap stops the transfer as soon as it is crossed.
    """
    try:
        await run_in_threadpool(service.ensure_quota_available, user.id)
        reader = MultipartUploadReader(
            request.headers.get("content-type"),
            open_file=partial(service.begin_upload, user.id),
        )
        try:
            async for chunk in request.stream():
                await run_in_threadpool(reader.feed, chunk)
            await run_in_threadpool(reader.finish)
        except BaseException:
            reader.abort()
            raise

        if reader.file is None:
            logger.warning("upload.missing_file", extra={"user_id": user.id})
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"status": "error", "failure_reason": "missing_file"},
            )
        created = await run_in_threadpool(
            partial(
                service.complete_upload,
                user.id,
                reader.file,
                content_type=reader.file_content_type,
                title=reader.fields.get("title"),
                location=reader.fields.get("location"),
            )
        )
    except QuotaExceededError as exc:
        detail = {
            "status": "error",
            "failure_reason": "quota_exceeded",
            "quota_bytes": str(exc.quota_bytes),
            "used_bytes": str(exc.used_bytes),
            "remaining_bytes": str(exc.remaining_bytes),
        }
        if exc.file_size_bytes is not None:
            detail["file_size_bytes"] = str(exc.file_size_bytes)
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail) from exc
    except PayloadTooLargeError as exc:
        logger.warning("upload.rejected.too_large", extra={"user_id": user.id})
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"status": "error", "failure_reason": "payload_too_large"},
        ) from exc
    except UnsupportedMediaError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "failure_reason": "unsupported_media", "details": str(exc)},
        ) from exc
    except MalformedUploadError as exc:
        logger.warning("upload.rejected.malformed", extra={"user_id": user.id, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "failure_reason": "malformed_upload", "details": str(exc)},
        ) from exc
    return {"video": serialize_video(created)}


__all__ = ["router", "get_upload_service"]
