"""Video file storage rooted at a single directory."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from ..exceptions import PayloadTooLargeError, StorageError

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB


@dataclass(slots=True)
class StoredFile:
    """Result of persisting an upload."""

    relative_path: str
    absolute_path: Path
    size_bytes: int


@dataclass(slots=True)
class PendingUpload:
    """An upload being written chunk by chunk into ``.temp``.

    ``commit`` moves the finished file to ``<root>/<user_id>/<filename>``;
    ``abort`` closes and removes the partial file and may be called any
    number of times. A partial file never appears under the user dir.
    """

    store: "VideoFileStore"
    user_id: str
    filename: str
    temp_path: Path
    sink: BinaryIO
    max_bytes: int | None = None
    size_bytes: int = 0
    finished: bool = False

    def write(self, chunk: bytes) -> None:
        self.size_bytes += len(chunk)
        if self.max_bytes is not None and self.size_bytes > self.max_bytes:
            raise PayloadTooLargeError(f"upload exceeds {self.max_bytes} bytes")
        self.sink.write(chunk)

    def commit(self) -> StoredFile:
        try:
            self.sink.close()
            target = self.store.user_dir(self.user_id) / self.filename
            self.temp_path.replace(target)
        except BaseException:
            self.abort()
            raise
        self.finished = True
        relative = f"{self.user_id}/{self.filename}"
        self.store.log.info(
            "storage.file.written",
            extra={"user_id": self.user_id, "path": relative, "size_bytes": self.size_bytes},
        )
        return StoredFile(relative_path=relative, absolute_path=target, size_bytes=self.size_bytes)

    def abort(self) -> None:
        if self.finished:
            return
        self.finished = True
        self.sink.close()
        self.temp_path.unlink(missing_ok=True)
        self.store.log.info(
            "storage.upload.aborted",
            extra={"user_id": self.user_id, "size_bytes": self.size_bytes},
        )


@dataclass(slots=True)
class CleanupResult:
    files_removed: int = 0
    bytes_freed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class VideoFileStore:
    """Resolve, stream, write and delete video files under ``root``."""

    root: Path
    chunk_size: int = CHUNK_SIZE
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    @property
    def temp_dir(self) -> Path:
        return self.root / ".temp"

    def resolve(self, relative_path: str) -> Path:
        """Map a stored relative path to an absolute one inside ``root``."""
        base = self.root.resolve()
        candidate = (base / relative_path).resolve()
        try:
            candidate.relative_to(base)
        except ValueError as exc:
            raise StorageError(f"path escapes storage root: {relative_path}") from exc
        return candidate

    def exists(self, relative_path: str) -> bool:
        return self.resolve(relative_path).is_file()

    def size(self, relative_path: str) -> int:
        return self.resolve(relative_path).stat().st_size

    def delete(self, relative_path: str) -> bool:
        """Remove the file; ``False`` when it was already absent."""
        path = self.resolve(relative_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        self.log.info("storage.file.deleted", extra={"path": relative_path})
        return True

    def open_range(self, relative_path: str, start: int, end: int) -> Iterator[bytes]:
        """Open the file now and return an iterator over bytes ``[start, end]``.

        Opening happens eagerly so missing or unreadable files surface before a
        response is started. The handle is closed when the iterator finishes or
        is closed early (client disconnect).
        """
        handle = self.resolve(relative_path).open("rb")
        try:
            handle.seek(start)
        except OSError:
            handle.close()
            raise
        return self._iter_range(handle, end - start + 1)

    def _iter_range(self, handle: BinaryIO, length: int) -> Iterator[bytes]:
        remaining = length
        try:
            while remaining > 0:
                chunk = handle.read(min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
        finally:
            handle.close()

    def user_dir(self, user_id: str) -> Path:
        directory = self.resolve(user_id)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def open_upload(self, user_id: str, *, suffix: str, max_bytes: int | None = None) -> PendingUpload:
        """Start writing an upload under ``.temp``; see :class:`PendingUpload`."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{uuid.uuid4()}{suffix.lower()}"
        temp_path = self.temp_dir / filename
        return PendingUpload(
            store=self,
            user_id=user_id,
            filename=filename,
            temp_path=temp_path,
            sink=temp_path.open("wb"),
            max_bytes=max_bytes,
        )

    def cleanup_temp_files(self, max_age_seconds: float, *, now: datetime | None = None) -> CleanupResult:
        """Delete leftovers of interrupted uploads older than ``max_age_seconds``."""
        result = CleanupResult()
        if not self.temp_dir.exists():
            return result
        reference = (now or datetime.now(timezone.utc)).timestamp()
        for path in self.temp_dir.iterdir():
            if not path.is_file():
                continue
            self._remove_if_stale(path, reference, max_age_seconds, result)
        self.log.info(
            "storage.temp.cleanup",
            extra={"files_removed": result.files_removed, "bytes_freed": result.bytes_freed},
        )
        return result

    def find_orphaned_files(self, known_paths: set[str]) -> list[Path]:
        """Files under user dirs with no matching video ``file_path``."""
        base = self.root.resolve()
        orphaned: list[Path] = []
        for path in sorted(base.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(base)
            if relative.parts and relative.parts[0].startswith("."):
                continue
            if relative.as_posix() not in known_paths:
                orphaned.append(path)
        return orphaned

    def cleanup_orphaned_files(
        self,
        known_paths: set[str],
        max_age_seconds: float,
        *,
        now: datetime | None = None,
    ) -> CleanupResult:
        result = CleanupResult()
        reference = (now or datetime.now(timezone.utc)).timestamp()
        for path in self.find_orphaned_files(known_paths):
            self._remove_if_stale(path, reference, max_age_seconds, result)
        self.log.info(
            "storage.orphans.cleanup",
            extra={
                "files_removed": result.files_removed,
                "bytes_freed": result.bytes_freed,
                "errors": len(result.errors),
            },
        )
        return result

    def _remove_if_stale(
        self,
        path: Path,
        reference: float,
        max_age_seconds: float,
        result: CleanupResult,
    ) -> None:
        try:
            stat = path.stat()
            # recent files may still be mid-upload
            if reference - stat.st_mtime < max_age_seconds:
                return
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            result.errors.append(f"{path}: {exc}")
            self.log.warning("storage.cleanup.failed", extra={"path": str(path), "error": str(exc)})
            return
        result.files_removed += 1
        result.bytes_freed += stat.st_size


__all__ = ["CHUNK_SIZE", "CleanupResult", "PendingUpload", "StoredFile", "VideoFileStore"]
