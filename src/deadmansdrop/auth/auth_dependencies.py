"""Authentication dependencies for FastAPI routers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.models import User
from .auth_service import AuthFailure, Authenticated, TokenAuthenticator

security = HTTPBearer(auto_error=False)


def get_authenticator(request: Request) -> TokenAuthenticator:
    try:
        return request.app.state.authenticator  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("TokenAuthenticator is not configured") from exc


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    authenticator: TokenAuthenticator = Depends(get_authenticator),
) -> User:
    token = credentials.credentials if credentials is not None else None
    outcome = authenticator.authenticate(token)
    if isinstance(outcome, Authenticated):
        return outcome.user
    if isinstance(outcome, AuthFailure):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"status": "error", "failure_reason": "auth_unavailable"},
        )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"status": "error", "failure_reason": outcome.reason},
        headers={"WWW-Authenticate": "Bearer"},
    )


__all__ = ["get_authenticator", "require_user", "security"]
