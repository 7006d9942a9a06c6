"""Check-in handling."""

from .checkin_service import CheckInResult, CheckInService

__all__ = ["CheckInResult", "CheckInService"]
