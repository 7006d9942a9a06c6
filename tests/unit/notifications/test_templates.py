from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.deadmansdrop.notifications.templates import (
    DeepLinkAction,
    NotificationType,
    build_reminder,
    truncate_title,
)

pytestmark = pytest.mark.unit

NOW = datetime(2026, 1, 17, 9, 0, 0)


def test_truncate_title_keeps_short_titles() -> None:
    assert truncate_title("Holiday") == "Holiday"
    assert truncate_title("x" * 50) == "x" * 50


def test_truncate_title_adds_ellipsis() -> None:
    truncated = truncate_title("y" * 80)

    assert len(truncated) == 50
    assert truncated.endswith("...")


def test_reminder_more_than_a_day_out() -> None:
    content = build_reminder(
        video_id="v1",
        user_id="u1",
        video_title="Holiday",
        distribute_at=NOW + timedelta(days=2, hours=3),
        now=NOW,
    )

    assert content.title == "Check-In Reminder"
    assert content.body == 'Your video "Holiday" will be distributed in 2 days. Tap to prevent distribution.'
    assert content.data["type"] == NotificationType.CHECK_IN_REMINDER.value
    assert content.data["action"] == DeepLinkAction.OPEN_VIDEO.value
    assert content.data["distribute_at"] == "2026-01-19T12:00:00"


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(hours=23, minutes=59), "23 hours"),
        (timedelta(hours=1), "1 hour"),
        (timedelta(minutes=30), "30 minutes"),
    ],
)
def test_warning_inside_last_day(delta: timedelta, expected: str) -> None:
    content = build_reminder(
        video_id="v1",
        user_id="u1",
        video_title="Holiday",
        distribute_at=NOW + delta,
        now=NOW,
    )

    assert content.title == "⚠️ Distribution Soon"
    assert content.body == f'"Holiday" will be distributed in {expected}! Check in now to prevent distribution.'
    assert content.data["action"] == DeepLinkAction.OPEN_CHECK_IN.value


def test_exactly_24_hours_is_still_a_reminder() -> None:
    content = build_reminder(
        video_id="v1",
        user_id="u1",
        video_title="Holiday",
        distribute_at=NOW + timedelta(hours=24),
        now=NOW,
    )

    assert content.data["type"] == NotificationType.CHECK_IN_REMINDER.value
    assert content.data["time_until_distribution"] == "1 day"


def test_body_uses_truncated_title_but_payload_keeps_full_title() -> None:
    title = "A very long video title that keeps going and going past fifty"
    content = build_reminder(
        video_id="v1",
        user_id="u1",
        video_title=title,
        distribute_at=NOW + timedelta(days=3),
        now=NOW,
    )

    assert truncate_title(title) in content.body
    assert title not in content.body
    assert content.data["video_title"] == title
