from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.deadmansdrop.db.db_init import init_db
from src.deadmansdrop.db.db_models import UserModel, VideoModel
from src.deadmansdrop.domain.models import VideoStatus, utcnow


def build_session_factory() -> sessionmaker[Session]:
    # one shared connection so TestClient worker threads see the same in-memory DB
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def insert_user(
    session_factory,
    *,
    username: str | None = None,
    quota: int = 10_000_000,
    used: int = 0,
    timer_days: int = 7,
    push_token: str | None = None,
) -> str:
    with session_factory() as session:
        user = UserModel(
            username=username or f"user-{uuid.uuid4().hex[:8]}",
            storage_quota_bytes=quota,
            storage_used_bytes=used,
            default_timer_days=timer_days,
            fcm_token=push_token,
        )
        session.add(user)
        session.commit()
        return user.id


def insert_video(
    session_factory,
    *,
    user_id: str,
    status: VideoStatus = VideoStatus.ACTIVE,
    distribute_at: datetime | None = None,
    distributed_at: datetime | None = None,
    expires_at: datetime | None = None,
    file_path: str = "user/video.mp4",
    file_size_bytes: int = 1000,
    title: str = "Holiday",
    mime_type: str = "video/mp4",
    public_token: str | None = None,
) -> str:
    now = utcnow()
    distribute_at = distribute_at or now + timedelta(days=7)
    with session_factory() as session:
        video = VideoModel(
            user_id=user_id,
            title=title,
            file_path=file_path,
            file_size_bytes=file_size_bytes,
            mime_type=mime_type,
            status=status.value,
            distribute_at=distribute_at,
            distributed_at=distributed_at,
            expires_at=expires_at,
            public_token=public_token or str(uuid.uuid4()),
            created_at=distribute_at - timedelta(days=30),
            updated_at=distribute_at - timedelta(days=30),
        )
        session.add(video)
        session.commit()
        return video.id


def storage_used(session_factory, user_id: str) -> int:
    with session_factory() as session:
        return int(session.get(UserModel, user_id).storage_used_bytes)


def video_row(session_factory, video_id: str) -> VideoModel:
    with session_factory() as session:
        return session.get(VideoModel, video_id)


def video_ids(session_factory, user_id: str) -> list[str]:
    with session_factory() as session:
        return list(session.scalars(select(VideoModel.id).where(VideoModel.user_id == user_id)))


def signed_token(
    user_id: str,
    signing_key: str,
    *,
    issued_at: datetime | None = None,
    ttl: timedelta = timedelta(hours=1),
) -> str:
    """HS256 token shaped like the ones the account service hands to devices."""
    now = issued_at or datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": user_id, "iat": int(now.timestamp()), "exp": int((now + ttl).timestamp())},
        signing_key,
        algorithm="HS256",
    )


def bearer_header(user_id: str, signing_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {signed_token(user_id, signing_key)}"}
