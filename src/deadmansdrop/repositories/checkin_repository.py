"""Persistence layer for the append-only check-in audit trail."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.db_models import CheckInModel, VideoModel
from ..domain.models import CheckIn, CheckInAction, Video, VideoStatus
from ..exceptions import InvalidStateError, NotFoundError, handle_sqlalchemy_errors
from .video_repository import video_from_model


class CheckInRepository:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record_check_in(
        self,
        video_id: str,
        action: CheckInAction,
        *,
        now: datetime,
        distribute_at: datetime | None,
    ) -> tuple[Video, CheckIn]:
        """Insert the check-in and update the video in one transaction.

        ``distribute_at=None`` only touches ``updated_at``.
        """
        with handle_sqlalchemy_errors(entity="check_in"), self._session_factory() as session:
            video = session.get(VideoModel, video_id, with_for_update=True)
            if video is None:
                raise NotFoundError(f"video '{video_id}' not found")
            # a sweep may have advanced the row since the caller checked it
            if video.status != VideoStatus.ACTIVE.value:
                raise InvalidStateError(video_id, video.status, "check in")
            check_in = CheckInModel(video_id=video_id, action=CheckInAction(action).value, created_at=now)
            session.add(check_in)
            if distribute_at is not None:
                video.distribute_at = distribute_at
            video.updated_at = now
            session.commit()
            return video_from_model(video), self._to_domain(check_in)

    def list_for_video(self, video_id: str) -> list[CheckIn]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(CheckInModel)
                .where(CheckInModel.video_id == video_id)
                .order_by(CheckInModel.created_at.desc())
            ).all()
            return [self._to_domain(row) for row in rows]

    @staticmethod
    def _to_domain(model: CheckInModel) -> CheckIn:
        return CheckIn(
            id=model.id,
            video_id=model.video_id,
            action=CheckInAction(model.action),
            created_at=model.created_at,
        )
