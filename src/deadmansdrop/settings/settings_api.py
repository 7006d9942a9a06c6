"""HTTP routes for the authenticated user's settings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth.auth_dependencies import require_user
from ..domain.models import User
from ..exceptions import NotFoundError
from .settings_schemas import UserSettingsEnvelope, UserSettingsResponse, UserSettingsUpdateRequest
from .settings_service import UserSettingsService

router = APIRouter(prefix="/api/user", tags=["settings"])


def get_user_settings_service(request: Request) -> UserSettingsService:
    try:
        return request.app.state.user_settings_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("UserSettingsService is not configured") from exc


def _user_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"status": "error", "failure_reason": "user_not_found"},
    )


@router.get("/settings", response_model=UserSettingsResponse)
def read_settings(
    user: User = Depends(require_user),
    service: UserSettingsService = Depends(get_user_settings_service),
) -> UserSettingsResponse:
    try:
        snapshot = service.load(user.id)
    except NotFoundError as exc:
        raise _user_not_found() from exc
    return UserSettingsResponse(**snapshot)


@router.patch("/settings", response_model=UserSettingsEnvelope)
def update_settings(
    payload: UserSettingsUpdateRequest,
    user: User = Depends(require_user),
    service: UserSettingsService = Depends(get_user_settings_service),
) -> UserSettingsEnvelope:
    try:
        snapshot = service.update(user.id, payload.model_dump(exclude_unset=True))
    except NotFoundError as exc:
        raise _user_not_found() from exc
    return UserSettingsEnvelope(settings=UserSettingsResponse(**snapshot))


__all__ = ["router", "get_user_settings_service"]
