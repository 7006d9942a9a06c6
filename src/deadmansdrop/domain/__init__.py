"""Domain entities shared across services."""

from .models import (
    CheckIn,
    CheckInAction,
    DistributionCandidate,
    ExpirationCandidate,
    ReminderTarget,
    User,
    Video,
    VideoStatus,
    can_perform_check_in,
    next_status,
    utcnow,
)

__all__ = [
    "CheckIn",
    "CheckInAction",
    "DistributionCandidate",
    "ExpirationCandidate",
    "ReminderTarget",
    "User",
    "Video",
    "VideoStatus",
    "can_perform_check_in",
    "next_status",
    "utcnow",
]
