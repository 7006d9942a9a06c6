"""Per-user escrow settings."""

from .settings_service import UserSettingsService

__all__ = ["UserSettingsService"]
