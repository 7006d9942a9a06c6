"""Deadline calculation helpers for distribution and retention.

Distribution deadlines are hour-granular (the distribution sweep fires at
the top of every hour) while retention is day-granular. All helpers take
an explicit reference time so sweeps and tests can pin the clock; naive
and aware datetimes are normalised against each other before comparison.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .models import utcnow

RETENTION_DAYS = 7
DISTRIBUTION_WARNING_HOURS = 24


def _align(first: datetime, second: datetime) -> tuple[datetime, datetime]:
    if first.tzinfo is not None and second.tzinfo is None:
        second = second.replace(tzinfo=first.tzinfo)
    elif first.tzinfo is None and second.tzinfo is not None:
        first = first.replace(tzinfo=second.tzinfo)
    return first, second


def calculate_distribute_at(timer_days: int, *, from_time: datetime | None = None) -> datetime:
    """Return ``from_time + timer_days`` (defaults to now)."""

    if timer_days <= 0:
        raise ValueError("timer_days must be positive")
    base = from_time or utcnow()
    return base + timedelta(days=timer_days)


def calculate_expires_at(distributed_at: datetime, *, retention_days: int = RETENTION_DAYS) -> datetime:
    """Return the end of the retention window that starts at distribution."""

    if retention_days <= 0:
        raise ValueError("retention_days must be positive")
    return distributed_at + timedelta(days=retention_days)


def format_time_until_distribution(distribute_at: datetime, *, now: datetime | None = None) -> str:
    """Human readable countdown such as ``"2 days"``, ``"1 hour"`` or ``"soon"``."""

    distribute_at, current = _align(distribute_at, now or utcnow())
    remaining = distribute_at - current
    total_seconds = remaining.total_seconds()
    if total_seconds <= 0:
        return "soon"

    hours = int(total_seconds // 3600)
    days = hours // 24
    if days >= 1:
        return "1 day" if days == 1 else f"{days} days"
    if hours >= 1:
        return "1 hour" if hours == 1 else f"{hours} hours"
    minutes = int(total_seconds // 60)
    if minutes >= 1:
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return "soon"


def should_use_distribution_warning(distribute_at: datetime, *, now: datetime | None = None) -> bool:
    """Warn (instead of remind) when strictly less than 24 hours remain."""

    distribute_at, current = _align(distribute_at, now or utcnow())
    hours_left = (distribute_at - current).total_seconds() / 3600
    return 0 < hours_left < DISTRIBUTION_WARNING_HOURS


__all__ = [
    "RETENTION_DAYS",
    "calculate_distribute_at",
    "calculate_expires_at",
    "format_time_until_distribution",
    "should_use_distribution_warning",
]
