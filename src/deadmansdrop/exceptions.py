"""Domain level exceptions and helpers for repository layers."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "AppError",
    "RepositoryError",
    "NotFoundError",
    "IntegrityConstraintViolation",
    "DatabaseOperationError",
    "InvalidStateError",
    "QuotaExceededError",
    "PayloadTooLargeError",
    "StorageError",
    "UnsupportedMediaError",
    "MalformedUploadError",
    "ConfigurationError",
    "describe_error",
    "handle_sqlalchemy_errors",
]


class AppError(Exception):
    """Base class for application specific errors."""


class ConfigurationError(AppError):
    """Raised when environment configuration is missing or malformed."""


class RepositoryError(AppError):
    """Base class for persistence layer failures."""


class NotFoundError(RepositoryError):
    """Raised when a record could not be located."""


class IntegrityConstraintViolation(RepositoryError):
    """Raised when a database constraint is violated."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


class InvalidStateError(AppError):
    """Raised when an operation is illegal for the current video status."""

    def __init__(self, video_id: str, status: str, operation: str) -> None:
        super().__init__(f"cannot {operation} video '{video_id}' in status {status}")
        self.video_id = video_id
        self.status = status
        self.operation = operation


class QuotaExceededError(AppError):
    """Raised when an upload does not fit into the remaining storage quota."""

    def __init__(
        self,
        *,
        quota_bytes: int,
        used_bytes: int,
        remaining_bytes: int,
        file_size_bytes: int | None = None,
    ) -> None:
        super().__init__("storage quota exceeded")
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.remaining_bytes = remaining_bytes
        self.file_size_bytes = file_size_bytes


class PayloadTooLargeError(AppError):
    """Raised when an upload exceeds the configured maximum file size."""


class UnsupportedMediaError(AppError):
    """Raised when an upload is not an accepted video type."""


class MalformedUploadError(AppError):
    """Raised when an upload body is not a readable multipart form."""


class StorageError(AppError):
    """Raised when the storage root is unusable or a path escapes it."""


@dataclass(slots=True)
class _EntityContext:
    """Internal helper describing the entity for error messages."""

    entity: str | None = None

    def format(self, message: str) -> str:
        if self.entity:
            return f"{self.entity}: {message}"
        return message


def describe_error(error: object) -> str:
    """Render any raised value as the string recorded in sweep results."""

    if isinstance(error, BaseException):
        message = str(error)
        return message or error.__class__.__name__
    return str(error)


def _translate_sqlalchemy_error(exc: Exception, *, context: _EntityContext) -> RepositoryError:
    if isinstance(exc, sa_exc.IntegrityError):
        return IntegrityConstraintViolation(context.format("integrity constraint violated"))
    if isinstance(exc, sa_exc.DBAPIError):
        return DatabaseOperationError(context.format("database operation failed"))
    return RepositoryError(context.format(str(exc)))


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into domain specific ones."""

    context = _EntityContext(entity)
    try:
        yield
    except (sa_exc.IntegrityError, sa_exc.DBAPIError) as exc:
        raise _translate_sqlalchemy_error(exc, context=context) from exc
