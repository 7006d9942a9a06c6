"""Bearer token verification for device clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

import jwt
import structlog
from jwt import ExpiredSignatureError
from jwt import InvalidTokenError as PyJWTInvalidTokenError

from ..domain.models import User
from ..exceptions import NotFoundError
from ..repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Authenticated:
    user: User
    kind: Literal["authenticated"] = "authenticated"


@dataclass(slots=True, frozen=True)
class Unauthenticated:
    """Token missing, malformed, expired or pointing at an unknown user."""

    reason: str
    kind: Literal["unauthenticated"] = "unauthenticated"


@dataclass(slots=True, frozen=True)
class AuthFailure:
    """Verification itself broke (e.g. the user lookup failed)."""

    cause: str
    kind: Literal["failure"] = "failure"


AuthOutcome = Union[Authenticated, Unauthenticated, AuthFailure]


@dataclass(slots=True)
class TokenAuthenticator:
    """Resolve HS256 JWTs whose ``sub`` is the user id.

    Tokens are minted by the account service that shares ``JWT_SECRET``.
    """

    user_repo: UserRepository
    signing_key: str

    @classmethod
    def from_settings(cls, user_repo: UserRepository, signing_key: str) -> "TokenAuthenticator":
        if not signing_key:
            raise RuntimeError("JWT_SECRET is not configured")
        return cls(user_repo=user_repo, signing_key=signing_key)

    def authenticate(self, token: str | None) -> AuthOutcome:
        if not token:
            return Unauthenticated("missing_token")
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.signing_key,
                algorithms=["HS256"],
                options={"require": ["exp", "sub"]},
            )
        except ExpiredSignatureError:
            logger.info("auth.token.expired")
            return Unauthenticated("token_expired")
        except PyJWTInvalidTokenError as exc:
            logger.info("auth.token.invalid", error=str(exc))
            return Unauthenticated("invalid_token")

        user_id = str(payload["sub"])
        try:
            user = self.user_repo.get_user(user_id)
        except NotFoundError:
            logger.warning("auth.token.unknown_user", user_id=user_id)
            return Unauthenticated("unknown_user")
        except Exception as exc:
            logger.error("auth.token.lookup_failed", user_id=user_id, error=str(exc))
            return AuthFailure(str(exc) or exc.__class__.__name__)
        return Authenticated(user)


__all__ = [
    "AuthFailure",
    "AuthOutcome",
    "Authenticated",
    "TokenAuthenticator",
    "Unauthenticated",
]
