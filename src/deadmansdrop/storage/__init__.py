"""File storage and quota accounting."""

from .accounting import QuotaCheck, StorageAccounting
from .file_store import CleanupResult, PendingUpload, StoredFile, VideoFileStore

__all__ = [
    "CleanupResult",
    "PendingUpload",
    "QuotaCheck",
    "StorageAccounting",
    "StoredFile",
    "VideoFileStore",
]
