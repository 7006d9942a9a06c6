"""Pydantic schemas for the user settings API."""

from __future__ import annotations

from pydantic import BaseModel, Field, StrictInt, field_validator

MIN_TIMER_DAYS = 1
MAX_TIMER_DAYS = 365


class UserSettingsResponse(BaseModel):
    default_timer_days: int
    # strings so 64-bit counts survive JSON clients
    storage_quota_bytes: str
    storage_used_bytes: str
    fcm_token: str | None = None


class UserSettingsEnvelope(BaseModel):
    settings: UserSettingsResponse


class UserSettingsUpdateRequest(BaseModel):
    """Omitted fields stay unchanged; ``fcm_token: null`` clears the token."""

    default_timer_days: StrictInt | None = Field(default=None, ge=MIN_TIMER_DAYS, le=MAX_TIMER_DAYS)
    fcm_token: str | None = None

    @field_validator("default_timer_days")
    @classmethod
    def _timer_cannot_be_cleared(cls, value: int | None) -> int:
        if value is None:
            raise ValueError("default_timer_days cannot be null")
        return value
