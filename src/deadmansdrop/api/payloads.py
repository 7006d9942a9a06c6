"""JSON shapes shared by the authenticated video routes."""

from __future__ import annotations

from typing import Any

from ..domain.models import CheckIn, Video


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_video(video: Video) -> dict[str, Any]:
    # byte counts travel as strings so 64-bit values survive JS clients
    return {
        "id": video.id,
        "title": video.title,
        "file_size_bytes": str(video.file_size_bytes),
        "mime_type": video.mime_type,
        "status": video.status.value,
        "distribute_at": _iso(video.distribute_at),
        "distributed_at": _iso(video.distributed_at),
        "expires_at": _iso(video.expires_at),
        "public_token": video.public_token,
        "created_at": _iso(video.created_at),
        "updated_at": _iso(video.updated_at),
    }


def serialize_check_in(check_in: CheckIn) -> dict[str, Any]:
    return {
        "id": check_in.id,
        "video_id": check_in.video_id,
        "action": check_in.action.value,
        "created_at": _iso(check_in.created_at),
    }


__all__ = ["serialize_check_in", "serialize_video"]
