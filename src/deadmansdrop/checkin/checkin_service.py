"""Check-in handling: timer resets and the audit trail."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ..domain.deadlines import calculate_distribute_at
from ..domain.models import CheckIn, CheckInAction, Video, can_perform_check_in, utcnow
from ..exceptions import InvalidStateError, NotFoundError
from ..repositories.checkin_repository import CheckInRepository
from ..repositories.video_repository import VideoRepository


@dataclass(slots=True)
class CheckInResult:
    video: Video
    check_in: CheckIn


@dataclass(slots=True)
class CheckInService:
    """Apply check-in actions to ACTIVE videos.

    ``PREVENT_DISTRIBUTION`` pushes ``distribute_at`` to ``now + timer_days``;
    ``ALLOW_DISTRIBUTION`` only records the action and touches the row, so the
    next distribution sweep releases the video on its current schedule.
    """

    video_repo: VideoRepository
    checkin_repo: CheckInRepository
    clock: Callable[[], datetime] = utcnow
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def get_owned_video(self, video_id: str, owner_id: str) -> Video:
        """Return the video or raise ``NotFoundError`` (also for foreign videos)."""
        video = self.video_repo.get_video(video_id)
        if video.owner_id != owner_id:
            raise NotFoundError(f"video '{video_id}' not found")
        return video

    def perform_check_in(
        self,
        video_id: str,
        action: CheckInAction | str,
        timer_days: int,
    ) -> CheckInResult:
        action = CheckInAction(action)
        current = self.video_repo.get_video(video_id)
        if not can_perform_check_in(current.status):
            self.log.warning(
                "checkin.rejected",
                extra={"video_id": video_id, "status": current.status.value, "action": action.value},
            )
            raise InvalidStateError(video_id, current.status.value, "check in")

        now = self.clock()
        distribute_at = None
        if action is CheckInAction.PREVENT_DISTRIBUTION:
            distribute_at = calculate_distribute_at(timer_days, from_time=now)

        video, check_in = self.checkin_repo.record_check_in(
            video_id,
            action,
            now=now,
            distribute_at=distribute_at,
        )
        self.log.info(
            "checkin.completed",
            extra={
                "video_id": video_id,
                "check_in_id": check_in.id,
                "action": action.value,
                "distribute_at": video.distribute_at.isoformat(),
            },
        )
        return CheckInResult(video=video, check_in=check_in)

    def list_check_ins(self, video_id: str) -> list[CheckIn]:
        return self.checkin_repo.list_for_video(video_id)


__all__ = ["CheckInResult", "CheckInService"]
