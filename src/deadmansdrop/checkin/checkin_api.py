"""HTTP routes for check-ins."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ..api.payloads import serialize_check_in, serialize_video
from ..auth.auth_dependencies import require_user
from ..domain.models import CheckInAction, User
from ..exceptions import InvalidStateError, NotFoundError
from .checkin_service import CheckInService

router = APIRouter(prefix="/api/videos", tags=["check-ins"])
logger = logging.getLogger(__name__)


class CheckInRequest(BaseModel):
    action: CheckInAction


def get_checkin_service(request: Request) -> CheckInService:
    try:
        return request.app.state.checkin_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("CheckInService is not configured") from exc


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"status": "error", "failure_reason": "video_not_found"},
    )


@router.post("/{video_id}/check-in")
def check_in(
    video_id: str,
    payload: CheckInRequest,
    user: User = Depends(require_user),
    service: CheckInService = Depends(get_checkin_service),
) -> dict:
    try:
        service.get_owned_video(video_id, user.id)
        result = service.perform_check_in(video_id, payload.action, user.default_timer_days)
    except NotFoundError:
        logger.info("checkin.video_not_found", extra={"video_id": video_id, "user_id": user.id})
        raise _not_found() from None
    except InvalidStateError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "status": "error",
                "failure_reason": "invalid_state",
                "video_status": exc.status,
            },
        ) from exc
    return {
        "video": serialize_video(result.video),
        "check_in": serialize_check_in(result.check_in),
    }


@router.get("/{video_id}/check-ins")
def list_check_ins(
    video_id: str,
    user: User = Depends(require_user),
    service: CheckInService = Depends(get_checkin_service),
) -> dict:
    try:
        service.get_owned_video(video_id, user.id)
    except NotFoundError:
        raise _not_found() from None
    return {"check_ins": [serialize_check_in(item) for item in service.list_check_ins(video_id)]}


__all__ = ["router", "get_checkin_service"]
