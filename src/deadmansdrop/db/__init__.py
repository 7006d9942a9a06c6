"""Database package."""

from .db_init import init_db
from .db_models import Base, CheckInModel, UserModel, VideoModel

__all__ = ["Base", "CheckInModel", "UserModel", "VideoModel", "init_db"]
