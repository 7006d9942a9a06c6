"""Persistence layer for video lifecycle rows."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.db_models import UserModel, VideoModel
from ..domain.models import (
    DistributionCandidate,
    ExpirationCandidate,
    ReminderTarget,
    Video,
    VideoStatus,
    next_status,
    utcnow,
)
from ..exceptions import NotFoundError, handle_sqlalchemy_errors
from ..storage.accounting import apply_storage_delta


def _forward_step(current: VideoStatus) -> tuple[str, str]:
    """Column values for the guarded ``current -> successor`` update."""
    target = next_status(current)
    if target is None:
        raise ValueError(f"{current.value} has no successor")
    return current.value, target.value


class VideoRepository:
    """Query and advance video rows.

    Every state-changing method guards on the current status in the
    ``WHERE`` clause, so a row that already moved on is left untouched and
    the method reports ``False`` instead of overwriting it.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_video(
        self,
        *,
        user_id: str,
        title: str,
        file_path: str,
        file_size_bytes: int,
        mime_type: str,
        distribute_at: datetime,
        status: VideoStatus = VideoStatus.ACTIVE,
        created_at: datetime | None = None,
    ) -> Video:
        now = created_at or utcnow()
        if distribute_at <= now:
            raise ValueError("distribute_at must be later than created_at")
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            model = VideoModel(
                user_id=user_id,
                title=title,
                file_path=file_path,
                file_size_bytes=file_size_bytes,
                mime_type=mime_type,
                status=VideoStatus(status).value,
                distribute_at=distribute_at,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            # the owner pays for the bytes in the same transaction that creates the row
            apply_storage_delta(session, user_id, file_size_bytes)
            session.commit()
            return self._to_domain(model)

    def get_video(self, video_id: str) -> Video:
        with self._session_factory() as session:
            model = session.get(VideoModel, video_id)
            if model is None:
                raise NotFoundError(f"video '{video_id}' not found")
            return self._to_domain(model)

    def find_by_public_token(self, public_token: str) -> Video | None:
        with self._session_factory() as session:
            model = session.scalars(
                select(VideoModel).where(VideoModel.public_token == public_token)
            ).first()
            return self._to_domain(model) if model is not None else None

    def list_file_paths(self) -> set[str]:
        with self._session_factory() as session:
            return set(session.scalars(select(VideoModel.file_path)).all())

    def list_due_for_distribution(self, reference_time: datetime) -> list[DistributionCandidate]:
        with self._session_factory() as session:
            rows = session.execute(
                select(
                    VideoModel.id,
                    VideoModel.title,
                    VideoModel.user_id,
                    VideoModel.distribute_at,
                )
                .where(
                    VideoModel.status == VideoStatus.ACTIVE.value,
                    VideoModel.distribute_at <= reference_time,
                )
                .order_by(VideoModel.distribute_at)
            ).all()
            return [
                DistributionCandidate(
                    video_id=row.id,
                    title=row.title,
                    user_id=row.user_id,
                    distribute_at=row.distribute_at,
                )
                for row in rows
            ]

    def list_reminder_targets(self) -> list[ReminderTarget]:
        with self._session_factory() as session:
            rows = session.execute(
                select(
                    VideoModel.id,
                    VideoModel.title,
                    VideoModel.distribute_at,
                    UserModel.id.label("user_id"),
                    UserModel.fcm_token,
                )
                .join(UserModel, UserModel.id == VideoModel.user_id)
                .where(VideoModel.status == VideoStatus.ACTIVE.value)
                .order_by(VideoModel.distribute_at)
            ).all()
            return [
                ReminderTarget(
                    video_id=row.id,
                    title=row.title,
                    distribute_at=row.distribute_at,
                    user_id=row.user_id,
                    push_token=row.fcm_token,
                )
                for row in rows
            ]

    def list_due_for_expiration(self, reference_time: datetime) -> list[ExpirationCandidate]:
        with self._session_factory() as session:
            rows = session.execute(
                select(
                    VideoModel.id,
                    VideoModel.title,
                    VideoModel.user_id,
                    VideoModel.file_path,
                    VideoModel.file_size_bytes,
                    VideoModel.expires_at,
                )
                .where(
                    VideoModel.status == VideoStatus.DISTRIBUTED.value,
                    VideoModel.expires_at <= reference_time,
                )
                .order_by(VideoModel.expires_at)
            ).all()
            return [
                ExpirationCandidate(
                    video_id=row.id,
                    title=row.title,
                    user_id=row.user_id,
                    file_path=row.file_path,
                    file_size_bytes=int(row.file_size_bytes),
                    expires_at=row.expires_at,
                )
                for row in rows
            ]

    def mark_distributed(
        self,
        video_id: str,
        *,
        distributed_at: datetime,
        expires_at: datetime,
        reference_time: datetime,
    ) -> bool:
        """ACTIVE -> DISTRIBUTED, only while the row is still due.

        A check-in that pushed ``distribute_at`` past ``reference_time`` after
        the sweep's query wins over the sweep.
        """
        source, target = _forward_step(VideoStatus.ACTIVE)
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            result = session.execute(
                update(VideoModel)
                .where(
                    VideoModel.id == video_id,
                    VideoModel.status == source,
                    VideoModel.distribute_at <= reference_time,
                )
                .values(
                    status=target,
                    distributed_at=distributed_at,
                    expires_at=expires_at,
                    updated_at=distributed_at,
                )
            )
            session.commit()
            return result.rowcount == 1

    def expire_video(self, candidate: ExpirationCandidate, *, expired_at: datetime) -> bool:
        """DISTRIBUTED -> EXPIRED and release the owner's bytes in one transaction."""
        source, target = _forward_step(VideoStatus.DISTRIBUTED)
        with handle_sqlalchemy_errors(entity="video"), self._session_factory() as session:
            result = session.execute(
                update(VideoModel)
                .where(
                    VideoModel.id == candidate.video_id,
                    VideoModel.status == source,
                )
                .values(status=target, updated_at=expired_at)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            apply_storage_delta(session, candidate.user_id, -candidate.file_size_bytes)
            session.commit()
            return True

    @staticmethod
    def _to_domain(model: VideoModel) -> Video:
        return video_from_model(model)


def video_from_model(model: VideoModel) -> Video:
    return Video(
        id=model.id,
        owner_id=model.user_id,
        title=model.title,
        file_path=model.file_path,
        file_size_bytes=int(model.file_size_bytes),
        mime_type=model.mime_type,
        status=VideoStatus(model.status),
        distribute_at=model.distribute_at,
        distributed_at=model.distributed_at,
        expires_at=model.expires_at,
        public_token=model.public_token,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
