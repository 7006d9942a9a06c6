"""Public endpoint for distributed video downloads."""

from fastapi import APIRouter, Header

from .public_video_service import PublicVideoService


def build_public_video_router(service: PublicVideoService) -> APIRouter:
    router = APIRouter(prefix="/api/public/videos", tags=["public-videos"])

    @router.get("/{token}")
    def get_video(token: str, range_header: str | None = Header(None, alias="Range")):
        return service.open_video(token, range_header)

    return router
