"""Reminder notifications."""

from .push_sender import FcmPushSender, LoggingPushSender, PushSender, PushSenderError, build_push_sender
from .templates import NotificationContent, build_reminder

__all__ = [
    "FcmPushSender",
    "LoggingPushSender",
    "NotificationContent",
    "PushSender",
    "PushSenderError",
    "build_push_sender",
    "build_reminder",
]
