"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db
from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///deadmansdrop.db"


@dataclass(slots=True)
class StorageSettings:
    root: Path
    max_file_size_bytes: int
    chunk_size_bytes: int

    @property
    def temp(self) -> Path:
        return self.root / ".temp"


@dataclass(slots=True)
class PushSettings:
    project_id: str | None
    access_token: str | None

    @property
    def configured(self) -> bool:
        return bool(self.project_id and self.access_token)


@dataclass(slots=True)
class AppConfig:
    storage: StorageSettings
    push: PushSettings
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]
    jwt_secret: str
    default_timer_days: int
    retention_days: int
    scheduler_enabled: bool


def _get_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a valid integer, got: {raw}") from exc


def _get_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _ensure_storage_root(settings: StorageSettings) -> None:
    try:
        settings.root.mkdir(parents=True, exist_ok=True)
        settings.temp.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"storage root {settings.root} is not usable: {exc}") from exc
    if not os.access(settings.root, os.W_OK):
        raise ConfigurationError(f"storage root {settings.root} is not writable")


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, future=True, connect_args=connect_args)


def load_config() -> AppConfig:
    """Load configuration from environment (and ``.env`` when present)."""
    load_dotenv(".env", override=False)

    storage = StorageSettings(
        root=Path(os.getenv("STORAGE_PATH", "uploads")).resolve(),
        max_file_size_bytes=_get_int("MAX_FILE_SIZE_MB", 500) * 1024 * 1024,
        chunk_size_bytes=_get_int("UPLOAD_CHUNK_SIZE_BYTES", 1 * 1024 * 1024),
    )
    _ensure_storage_root(storage)

    jwt_secret = os.getenv("JWT_SECRET", "")
    if not jwt_secret:
        raise ConfigurationError("JWT_SECRET is not configured")

    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    engine = build_engine(database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)

    return AppConfig(
        storage=storage,
        push=PushSettings(
            project_id=os.getenv("FCM_PROJECT_ID") or None,
            access_token=os.getenv("FCM_ACCESS_TOKEN") or None,
        ),
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
        jwt_secret=jwt_secret,
        default_timer_days=_get_int("DEFAULT_TIMER_DAYS", 7),
        retention_days=_get_int("RETENTION_DAYS", 7),
        scheduler_enabled=_get_bool("SCHEDULER_ENABLED", True),
    )
