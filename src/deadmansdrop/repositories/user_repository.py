"""Persistence layer for users and their escrow settings."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from ..db.db_models import DEFAULT_QUOTA_BYTES, UserModel
from ..domain.models import User, utcnow
from ..exceptions import NotFoundError, handle_sqlalchemy_errors

# user-facing setting name -> column
_SETTINGS_COLUMNS = {"default_timer_days": "default_timer_days", "push_token": "fcm_token"}


class UserRepository:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_user(
        self,
        *,
        username: str,
        storage_quota_bytes: int = DEFAULT_QUOTA_BYTES,
        default_timer_days: int = 7,
        push_token: str | None = None,
    ) -> User:
        now = utcnow()
        with handle_sqlalchemy_errors(entity="user"), self._session_factory() as session:
            model = UserModel(
                username=username,
                storage_quota_bytes=storage_quota_bytes,
                storage_used_bytes=0,
                default_timer_days=default_timer_days,
                fcm_token=push_token,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.commit()
            return self._to_domain(model)

    def get_user(self, user_id: str) -> User:
        with self._session_factory() as session:
            model = session.get(UserModel, user_id)
            if model is None:
                raise NotFoundError(f"user '{user_id}' not found")
            return self._to_domain(model)

    def update_settings(self, user_id: str, changes: Mapping[str, Any]) -> User:
        """Apply ``default_timer_days`` and/or ``push_token`` and return the user.

        Keys missing from ``changes`` are left alone; a ``None`` push token
        clears it.
        """
        unknown = set(changes) - _SETTINGS_COLUMNS.keys()
        if unknown:
            raise ValueError(f"unsupported user settings: {sorted(unknown)}")
        with handle_sqlalchemy_errors(entity="user"), self._session_factory() as session:
            model = session.get(UserModel, user_id)
            if model is None:
                raise NotFoundError(f"user '{user_id}' not found")
            for key, value in changes.items():
                setattr(model, _SETTINGS_COLUMNS[key], value)
            if changes:
                model.updated_at = utcnow()
                session.commit()
            return self._to_domain(model)

    @staticmethod
    def _to_domain(model: UserModel) -> User:
        return User(
            id=model.id,
            username=model.username,
            storage_quota_bytes=int(model.storage_quota_bytes),
            storage_used_bytes=int(model.storage_used_bytes),
            default_timer_days=model.default_timer_days,
            push_token=model.fcm_token,
            created_at=model.created_at,
        )
