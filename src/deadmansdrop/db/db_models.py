"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..domain.models import utcnow

DEFAULT_QUOTA_BYTES = 1024 * 1024 * 1024  # 1 GiB


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base declarative class."""


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    # signed 64-bit counters
    storage_quota_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=DEFAULT_QUOTA_BYTES)
    storage_used_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    default_timer_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    fcm_token: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    videos: Mapped[list["VideoModel"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )


class VideoModel(Base):
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)  # relative to storage root
    file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING", index=True)
    distribute_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    distributed_at: Mapped[datetime | None] = mapped_column(DateTime)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime)
    public_token: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, default=_uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user: Mapped[UserModel] = relationship(back_populates="videos")
    check_ins: Mapped[list["CheckInModel"]] = relationship(
        back_populates="video",
        cascade="all, delete-orphan",
    )


class CheckInModel(Base):
    __tablename__ = "check_ins"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    video_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    video: Mapped[VideoModel] = relationship(back_populates="check_ins")
