"""Result records returned by the lifecycle sweeps."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union


@dataclass(slots=True, frozen=True)
class VideoItemError:
    video_id: str
    error: str


@dataclass(slots=True, frozen=True)
class NotificationItemError:
    user_id: str
    video_id: str
    error: str


@dataclass(slots=True)
class DistributionJobResult:
    processed: int = 0
    distributed: int = 0
    failed: int = 0
    errors: list[VideoItemError] = field(default_factory=list)
    kind: Literal["distribution"] = "distribution"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class NotificationJobResult:
    videos_found: int = 0
    notifications_attempted: int = 0
    notifications_sent: int = 0
    notifications_skipped: int = 0
    notifications_failed: int = 0
    errors: list[NotificationItemError] = field(default_factory=list)
    kind: Literal["notifications"] = "notifications"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ExpirationJobResult:
    processed: int = 0
    expired: int = 0
    failed: int = 0
    bytes_freed: int = 0
    errors: list[VideoItemError] = field(default_factory=list)
    kind: Literal["expiration"] = "expiration"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


SweepResult = Union[DistributionJobResult, NotificationJobResult, ExpirationJobResult]


def failed_items(result: SweepResult) -> int:
    if isinstance(result, NotificationJobResult):
        return result.notifications_failed
    return result.failed


__all__ = [
    "DistributionJobResult",
    "ExpirationJobResult",
    "NotificationItemError",
    "NotificationJobResult",
    "SweepResult",
    "VideoItemError",
    "failed_items",
]
