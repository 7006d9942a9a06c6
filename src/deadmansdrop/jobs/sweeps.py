"""Bindings between the sweeps and their collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..domain.deadlines import RETENTION_DAYS
from ..notifications.push_sender import PushSender
from ..repositories.video_repository import VideoRepository
from ..storage.file_store import CleanupResult, VideoFileStore
from .distribution_job import process_distribution
from .expiration_job import process_expiration
from .notification_job import process_notifications
from .results import (
    DistributionJobResult,
    ExpirationJobResult,
    NotificationJobResult,
    SweepResult,
    failed_items,
)
from .scheduler import DAILY_9AM, DAILY_MIDNIGHT, HOURLY, JobDefinition, JobName, JobRegistry

logger = logging.getLogger(__name__)

STALE_UPLOAD_SECONDS = 24 * 60 * 60


@dataclass(slots=True)
class MaintenanceResult:
    temp_files: CleanupResult
    orphaned_files: CleanupResult


@dataclass(slots=True)
class SweepContext:
    video_repo: VideoRepository
    file_store: VideoFileStore
    push_sender: PushSender
    retention_days: int = RETENTION_DAYS

    def distribution(self, reference_time: datetime | None = None) -> DistributionJobResult:
        return process_distribution(
            self.video_repo,
            reference_time=reference_time,
            retention_days=self.retention_days,
        )

    def notifications(self, reference_time: datetime | None = None) -> NotificationJobResult:
        return process_notifications(self.video_repo, self.push_sender, reference_time=reference_time)

    def expiration(self, reference_time: datetime | None = None) -> ExpirationJobResult:
        return process_expiration(self.video_repo, self.file_store, reference_time=reference_time)

    def maintenance(self, *, max_age_seconds: float = STALE_UPLOAD_SECONDS) -> MaintenanceResult:
        temp = self.file_store.cleanup_temp_files(max_age_seconds)
        orphans = self.file_store.cleanup_orphaned_files(
            self.video_repo.list_file_paths(), max_age_seconds
        )
        return MaintenanceResult(temp_files=temp, orphaned_files=orphans)


def _reporting(name: JobName, sweep: Callable[[], SweepResult]) -> Callable[[], SweepResult]:
    def handler() -> SweepResult:
        result = sweep()
        if failed_items(result):
            logger.warning(
                "jobs.completed_with_failures",
                extra={"job": name.value, "failed": failed_items(result), "errors": result.to_dict()["errors"]},
            )
        return result

    return handler


def build_default_registry(context: SweepContext) -> JobRegistry:
    """Register the three lifecycle sweeps; none runs on start."""
    registry = JobRegistry()
    registry.register(
        JobDefinition(
            name=JobName.DISTRIBUTION,
            schedule=HOURLY,
            handler=_reporting(JobName.DISTRIBUTION, context.distribution),
        )
    )
    registry.register(
        JobDefinition(
            name=JobName.PUSH_NOTIFICATIONS,
            schedule=DAILY_9AM,
            handler=_reporting(JobName.PUSH_NOTIFICATIONS, context.notifications),
        )
    )
    registry.register(
        JobDefinition(
            name=JobName.EXPIRATION_CLEANUP,
            schedule=DAILY_MIDNIGHT,
            handler=_reporting(JobName.EXPIRATION_CLEANUP, context.expiration),
        )
    )
    return registry


__all__ = ["MaintenanceResult", "SweepContext", "build_default_registry"]
