"""Push notification transports."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Protocol

import httpx

FCM_ENDPOINT = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


class PushSenderError(Exception):
    """Raised when the push transport rejects or cannot deliver a message."""


class PushSender(Protocol):
    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str | None:
        """Deliver one message; return the transport message id or ``None``."""


@dataclass(slots=True)
class LoggingPushSender:
    """Stand-in used when no push credentials are configured."""

    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str | None:
        self.log.info(
            "push.send.skipped_unconfigured",
            extra={
                "token_prefix": token[:10],
                "title": title,
                "video_id": data.get("video_id"),
            },
        )
        return f"local-{uuid.uuid4()}"


@dataclass(slots=True)
class FcmPushSender:
    """Send messages through the FCM HTTP v1 API."""

    project_id: str
    access_token: str
    timeout_seconds: float = 10.0
    client: httpx.Client | None = None
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    @property
    def endpoint(self) -> str:
        return FCM_ENDPOINT.format(project_id=self.project_id)

    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str | None:
        message = {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "data": data,
                "android": {"priority": "high", "ttl": "86400s"},
                "apns": {
                    "headers": {"apns-priority": "10"},
                    "payload": {"aps": {"badge": 1, "sound": "default", "content-available": 1}},
                },
            }
        }
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = self._post(message, headers)
        except httpx.HTTPError as exc:
            raise PushSenderError(f"FCM HTTP error: {exc}") from exc

        if response.status_code != 200:
            detail = _extract_error(response)
            self.log.warning(
                "push.send.rejected",
                extra={"http_status": response.status_code, "detail": detail},
            )
            raise PushSenderError(f"FCM request failed (status={response.status_code}): {detail}")

        try:
            payload = response.json()
        except ValueError:
            return None
        return payload.get("name")

    def _post(self, message: dict, headers: dict[str, str]) -> httpx.Response:
        if self.client is not None:
            return self.client.post(self.endpoint, json=message, headers=headers)
        with httpx.Client(timeout=self.timeout_seconds) as client:
            return client.post(self.endpoint, json=message, headers=headers)


def _extract_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    error = data.get("error")
    if isinstance(error, dict):
        return " ".join(
            part for part in (str(error.get("status") or ""), str(error.get("message") or "")) if part
        )
    return str(data)


def build_push_sender(project_id: str | None, access_token: str | None) -> PushSender:
    if project_id and access_token:
        return FcmPushSender(project_id=project_id, access_token=access_token)
    return LoggingPushSender()


__all__ = [
    "FcmPushSender",
    "LoggingPushSender",
    "PushSender",
    "PushSenderError",
    "build_push_sender",
]
