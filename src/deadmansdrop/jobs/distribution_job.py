"""Hourly sweep releasing ACTIVE videos whose deadline has passed."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from ..domain.deadlines import RETENTION_DAYS, calculate_expires_at
from ..domain.models import DistributionCandidate, utcnow
from ..exceptions import describe_error
from .results import DistributionJobResult, VideoItemError

logger = logging.getLogger(__name__)


class DistributionStore(Protocol):
    def list_due_for_distribution(self, reference_time: datetime) -> list[DistributionCandidate]: ...

    def mark_distributed(
        self,
        video_id: str,
        *,
        distributed_at: datetime,
        expires_at: datetime,
        reference_time: datetime,
    ) -> bool: ...


def process_distribution(
    store: DistributionStore,
    *,
    reference_time: datetime | None = None,
    retention_days: int = RETENTION_DAYS,
) -> DistributionJobResult:
    """Move every due ACTIVE video to DISTRIBUTED.

    A failure while listing due videos propagates to the caller. A failure on
    one video is recorded in ``errors`` and leaves that video ACTIVE so the
    next run picks it up again.
    """
    current = reference_time or utcnow()
    result = DistributionJobResult()
    logger.info("jobs.distribution.started", extra={"reference_time": current.isoformat()})

    try:
        due = store.list_due_for_distribution(current)
    except Exception:
        logger.exception("jobs.distribution.query_failed")
        raise

    result.processed = len(due)
    if not due:
        logger.info("jobs.distribution.nothing_due")
        return result

    for video in due:
        try:
            distributed_at = utcnow()
            expires_at = calculate_expires_at(distributed_at, retention_days=retention_days)
            updated = store.mark_distributed(
                video.video_id,
                distributed_at=distributed_at,
                expires_at=expires_at,
                reference_time=current,
            )
        except Exception as exc:
            result.failed += 1
            result.errors.append(VideoItemError(video_id=video.video_id, error=describe_error(exc)))
            logger.error(
                "jobs.distribution.item_failed",
                extra={"video_id": video.video_id, "title": video.title, "error": describe_error(exc)},
            )
            continue

        if not updated:
            # checked in or distributed by a concurrent run after the query
            logger.info("jobs.distribution.item_no_longer_due", extra={"video_id": video.video_id})
            continue

        result.distributed += 1
        logger.info(
            "jobs.distribution.item_distributed",
            extra={
                "video_id": video.video_id,
                "user_id": video.user_id,
                "distributed_at": distributed_at.isoformat(),
                "expires_at": expires_at.isoformat(),
            },
        )

    logger.info(
        "jobs.distribution.completed",
        extra={
            "processed": result.processed,
            "distributed": result.distributed,
            "failed": result.failed,
        },
    )
    return result


__all__ = ["DistributionStore", "process_distribution"]
