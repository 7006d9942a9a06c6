"""Push notification content for check-in reminders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..domain.deadlines import format_time_until_distribution, should_use_distribution_warning

TITLE_MAX_LENGTH = 50


class NotificationType(str, Enum):
    CHECK_IN_REMINDER = "CHECK_IN_REMINDER"
    DISTRIBUTION_WARNING = "DISTRIBUTION_WARNING"


class DeepLinkAction(str, Enum):
    OPEN_VIDEO = "OPEN_VIDEO"
    OPEN_CHECK_IN = "OPEN_CHECK_IN"


@dataclass(slots=True, frozen=True)
class NotificationContent:
    title: str
    body: str
    data: dict[str, str]


_TEMPLATES: dict[NotificationType, tuple[str, str, DeepLinkAction]] = {
    NotificationType.CHECK_IN_REMINDER: (
        "Check-In Reminder",
        'Your video "{title}" will be distributed in {time}. Tap to prevent distribution.',
        DeepLinkAction.OPEN_VIDEO,
    ),
    NotificationType.DISTRIBUTION_WARNING: (
        "⚠️ Distribution Soon",
        '"{title}" will be distributed in {time}! Check in now to prevent distribution.',
        DeepLinkAction.OPEN_CHECK_IN,
    ),
}


def truncate_title(title: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    if len(title) <= max_length:
        return title
    return title[: max_length - 3] + "..."


def build_reminder(
    *,
    video_id: str,
    user_id: str,
    video_title: str,
    distribute_at: datetime,
    now: datetime,
) -> NotificationContent:
    """Render the reminder, switching to the warning template inside 24 hours.

    The ``data`` dict is the deep-link payload the mobile client routes on;
    push transports only carry string values.
    """
    kind = (
        NotificationType.DISTRIBUTION_WARNING
        if should_use_distribution_warning(distribute_at, now=now)
        else NotificationType.CHECK_IN_REMINDER
    )
    title_template, body_template, action = _TEMPLATES[kind]
    time_left = format_time_until_distribution(distribute_at, now=now)
    display_title = truncate_title(video_title)
    return NotificationContent(
        title=title_template,
        body=body_template.format(title=display_title, time=time_left),
        data={
            "type": kind.value,
            "video_id": video_id,
            "user_id": user_id,
            "action": action.value,
            "video_title": video_title,
            "distribute_at": distribute_at.isoformat(),
            "time_until_distribution": time_left,
        },
    )


__all__ = [
    "DeepLinkAction",
    "NotificationContent",
    "NotificationType",
    "build_reminder",
    "truncate_title",
]
