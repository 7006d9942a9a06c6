"""Daily sweep reminding owners of ACTIVE videos to check in."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from ..domain.models import ReminderTarget, utcnow
from ..exceptions import describe_error
from ..notifications.push_sender import PushSender
from ..notifications.templates import build_reminder
from .results import NotificationItemError, NotificationJobResult

logger = logging.getLogger(__name__)


class ReminderSource(Protocol):
    def list_reminder_targets(self) -> list[ReminderTarget]: ...


def process_notifications(
    source: ReminderSource,
    sender: PushSender,
    *,
    reference_time: datetime | None = None,
) -> NotificationJobResult:
    """Send one reminder per ACTIVE video.

    Owners without a push token are counted as skipped, not failed. A sender
    that returns no message id counts as a failed notification.
    """
    current = reference_time or utcnow()
    result = NotificationJobResult()
    logger.info("jobs.notifications.started", extra={"reference_time": current.isoformat()})

    try:
        targets = source.list_reminder_targets()
    except Exception:
        logger.exception("jobs.notifications.query_failed")
        raise

    result.videos_found = len(targets)
    if not targets:
        logger.info("jobs.notifications.nothing_active")
        return result

    for target in targets:
        result.notifications_attempted += 1
        if not target.push_token:
            result.notifications_skipped += 1
            logger.debug(
                "jobs.notifications.item_skipped",
                extra={"video_id": target.video_id, "user_id": target.user_id},
            )
            continue

        try:
            content = build_reminder(
                video_id=target.video_id,
                user_id=target.user_id,
                video_title=target.title,
                distribute_at=target.distribute_at,
                now=current,
            )
            message_id = sender.send(target.push_token, content.title, content.body, content.data)
        except Exception as exc:
            error = describe_error(exc)
        else:
            if message_id:
                result.notifications_sent += 1
                logger.debug(
                    "jobs.notifications.item_sent",
                    extra={"video_id": target.video_id, "message_id": message_id},
                )
                continue
            error = "push sender returned no message id"

        result.notifications_failed += 1
        result.errors.append(
            NotificationItemError(user_id=target.user_id, video_id=target.video_id, error=error)
        )
        logger.warning(
            "jobs.notifications.item_failed",
            extra={"video_id": target.video_id, "user_id": target.user_id, "error": error},
        )

    logger.info(
        "jobs.notifications.completed",
        extra={
            "videos_found": result.videos_found,
            "sent": result.notifications_sent,
            "skipped": result.notifications_skipped,
            "failed": result.notifications_failed,
        },
    )
    return result


__all__ = ["ReminderSource", "process_notifications"]
