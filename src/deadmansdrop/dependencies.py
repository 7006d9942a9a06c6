"""Dependency wiring helpers."""

from fastapi import FastAPI

from .auth.auth_service import TokenAuthenticator
from .checkin.checkin_api import router as checkin_router
from .checkin.checkin_service import CheckInService
from .config import AppConfig
from .delivery.public_video_router import build_public_video_router
from .delivery.public_video_service import PublicVideoService
from .jobs.scheduler import JobScheduler
from .jobs.sweeps import SweepContext, build_default_registry
from .notifications.push_sender import build_push_sender
from .repositories.checkin_repository import CheckInRepository
from .repositories.user_repository import UserRepository
from .repositories.video_repository import VideoRepository
from .settings.settings_api import router as settings_router
from .settings.settings_service import UserSettingsService
from .storage.accounting import StorageAccounting
from .storage.file_store import VideoFileStore
from .uploads.upload_api import router as upload_router
from .uploads.upload_service import UploadService


def build_sweep_context(config: AppConfig) -> SweepContext:
    return SweepContext(
        video_repo=VideoRepository(config.session_factory),
        file_store=VideoFileStore(root=config.storage.root, chunk_size=config.storage.chunk_size_bytes),
        push_sender=build_push_sender(config.push.project_id, config.push.access_token),
        retention_days=config.retention_days,
    )


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount module routers and attach services."""
    video_repo = VideoRepository(config.session_factory)
    user_repo = UserRepository(config.session_factory)
    checkin_repo = CheckInRepository(config.session_factory)
    file_store = VideoFileStore(root=config.storage.root, chunk_size=config.storage.chunk_size_bytes)

    sweep_context = build_sweep_context(config)

    app.state.config = config
    app.state.video_repo = video_repo
    app.state.user_repo = user_repo
    app.state.file_store = file_store
    app.state.authenticator = TokenAuthenticator.from_settings(user_repo, config.jwt_secret)
    app.state.checkin_service = CheckInService(video_repo=video_repo, checkin_repo=checkin_repo)
    app.state.upload_service = UploadService(
        accounting=StorageAccounting(config.session_factory),
        video_repo=video_repo,
        user_repo=user_repo,
        file_store=file_store,
        max_file_size_bytes=config.storage.max_file_size_bytes,
    )
    app.state.user_settings_service = UserSettingsService(user_repo=user_repo)
    app.state.sweep_context = sweep_context
    app.state.scheduler = JobScheduler(build_default_registry(sweep_context))

    public_video_service = PublicVideoService(video_repo=video_repo, file_store=file_store)

    app.include_router(upload_router)
    app.include_router(checkin_router)
    app.include_router(settings_router)
    app.include_router(build_public_video_router(public_video_service))
