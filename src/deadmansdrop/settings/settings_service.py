"""Read and update the settings a user controls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..domain.models import User
from ..repositories.user_repository import UserRepository


def settings_snapshot(user: User) -> dict[str, Any]:
    return {
        "default_timer_days": user.default_timer_days,
        "storage_quota_bytes": str(user.storage_quota_bytes),
        "storage_used_bytes": str(user.storage_used_bytes),
        "fcm_token": user.push_token,
    }


@dataclass(slots=True)
class UserSettingsService:
    """Timer default and push token for the authenticated user.

    A new timer default applies to later uploads only; videos already in
    escrow keep their deadlines.
    """

    user_repo: UserRepository
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def load(self, user_id: str) -> dict[str, Any]:
        return settings_snapshot(self.user_repo.get_user(user_id))

    def update(self, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Persist the keys present in ``payload`` (``default_timer_days``, ``fcm_token``)."""
        changes: dict[str, Any] = {}
        if "default_timer_days" in payload:
            changes["default_timer_days"] = payload["default_timer_days"]
        if "fcm_token" in payload:
            changes["push_token"] = payload["fcm_token"]

        if not changes:
            return self.load(user_id)
        user = self.user_repo.update_settings(user_id, changes)
        self.log.info(
            "user.settings.updated",
            extra={"user_id": user_id, "fields": sorted(payload)},
        )
        return settings_snapshot(user)


__all__ = ["UserSettingsService", "settings_snapshot"]
