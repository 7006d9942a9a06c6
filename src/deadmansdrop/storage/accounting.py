"""Per-user storage quota bookkeeping.

``storage_used_bytes`` is only ever changed through server-side
``used = used + delta`` statements so concurrent uploads and expirations
for the same user cannot lose updates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import Update, select, update
from sqlalchemy.orm import Session

from ..db.db_models import UserModel
from ..domain.models import utcnow
from ..exceptions import NotFoundError, QuotaExceededError, handle_sqlalchemy_errors

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class QuotaCheck:
    has_quota: bool
    quota_bytes: int
    used_bytes: int
    remaining_bytes: int

    def raise_if_exceeded(self, file_size_bytes: int | None = None) -> None:
        if not self.has_quota:
            raise QuotaExceededError(
                quota_bytes=self.quota_bytes,
                used_bytes=self.used_bytes,
                remaining_bytes=self.remaining_bytes,
                file_size_bytes=file_size_bytes,
            )


def storage_delta_statement(user_id: str, delta_bytes: int) -> Update:
    """Build the atomic increment/decrement statement for ``user_id``."""
    return (
        update(UserModel)
        .where(UserModel.id == user_id)
        .values(
            storage_used_bytes=UserModel.storage_used_bytes + delta_bytes,
            updated_at=utcnow(),
        )
    )


def apply_storage_delta(session: Session, user_id: str, delta_bytes: int) -> None:
    """Apply a delta inside an existing transaction."""
    result = session.execute(storage_delta_statement(user_id, delta_bytes))
    if result.rowcount == 0:
        raise NotFoundError(f"user '{user_id}' not found")


class StorageAccounting:
    """Quota checks and usage deltas backed by the ``users`` table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def update_user_storage_usage(self, user_id: str, delta_bytes: int) -> None:
        logger.debug(
            "storage.usage.delta",
            extra={"user_id": user_id, "delta_bytes": delta_bytes},
        )
        with handle_sqlalchemy_errors(entity="user"), self._session_factory() as session:
            apply_storage_delta(session, user_id, delta_bytes)
            session.commit()

    def check_user_storage_quota(self, user_id: str, candidate_bytes: int) -> QuotaCheck:
        with handle_sqlalchemy_errors(entity="user"), self._session_factory() as session:
            row = session.execute(
                select(UserModel.storage_quota_bytes, UserModel.storage_used_bytes).where(
                    UserModel.id == user_id
                )
            ).first()
        if row is None:
            raise NotFoundError(f"user '{user_id}' not found")
        quota_bytes, used_bytes = int(row[0]), int(row[1])
        remaining_bytes = quota_bytes - used_bytes
        return QuotaCheck(
            has_quota=remaining_bytes >= candidate_bytes,
            quota_bytes=quota_bytes,
            used_bytes=used_bytes,
            remaining_bytes=remaining_bytes,
        )


__all__ = [
    "QuotaCheck",
    "StorageAccounting",
    "apply_storage_delta",
    "storage_delta_statement",
]
