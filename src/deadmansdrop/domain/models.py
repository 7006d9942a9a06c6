"""Domain entities and lifecycle rules for escrowed videos."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Return naive UTC now, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VideoStatus(str, Enum):
    """Lifecycle status of a video; values only ever advance."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    DISTRIBUTED = "DISTRIBUTED"
    EXPIRED = "EXPIRED"


class CheckInAction(str, Enum):
    PREVENT_DISTRIBUTION = "PREVENT_DISTRIBUTION"
    ALLOW_DISTRIBUTION = "ALLOW_DISTRIBUTION"


_LIFECYCLE_ORDER: tuple[VideoStatus, ...] = (
    VideoStatus.PENDING,
    VideoStatus.ACTIVE,
    VideoStatus.DISTRIBUTED,
    VideoStatus.EXPIRED,
)


def next_status(status: VideoStatus | str) -> VideoStatus | None:
    """Return the single legal successor of ``status`` (``None`` for EXPIRED)."""
    index = _LIFECYCLE_ORDER.index(VideoStatus(status))
    if index + 1 >= len(_LIFECYCLE_ORDER):
        return None
    return _LIFECYCLE_ORDER[index + 1]


def can_perform_check_in(status: VideoStatus | str) -> bool:
    """Check-ins are only legal before distribution, while ACTIVE."""
    try:
        return VideoStatus(status) is VideoStatus.ACTIVE
    except ValueError:
        return False


@dataclass(slots=True)
class Video:
    """Snapshot of a video row."""

    id: str
    owner_id: str
    title: str
    file_path: str
    file_size_bytes: int
    mime_type: str
    status: VideoStatus
    distribute_at: datetime
    public_token: str
    created_at: datetime
    updated_at: datetime
    distributed_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def is_servable(self) -> bool:
        return self.status is VideoStatus.DISTRIBUTED


@dataclass(slots=True)
class CheckIn:
    id: str
    video_id: str
    action: CheckInAction
    created_at: datetime


@dataclass(slots=True)
class ReminderTarget:
    """ACTIVE video joined with its owner's push token."""

    video_id: str
    title: str
    distribute_at: datetime
    user_id: str
    push_token: str | None


@dataclass(slots=True)
class ExpirationCandidate:
    """DISTRIBUTED video whose retention window has elapsed."""

    video_id: str
    title: str
    user_id: str
    file_path: str
    file_size_bytes: int
    expires_at: datetime | None


@dataclass(slots=True)
class DistributionCandidate:
    video_id: str
    title: str
    user_id: str
    distribute_at: datetime


@dataclass(slots=True)
class User:
    id: str
    username: str
    storage_quota_bytes: int
    storage_used_bytes: int
    default_timer_days: int
    push_token: str | None
    created_at: datetime
