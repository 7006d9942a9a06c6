from .checkin_repository import CheckInRepository
from .user_repository import UserRepository
from .video_repository import VideoRepository, video_from_model

__all__ = ["CheckInRepository", "UserRepository", "VideoRepository", "video_from_model"]
