from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.deadmansdrop.jobs.scheduler import (
    DAILY_9AM,
    HOURLY,
    AlertSeverity,
    CronSchedule,
    DuplicateJobError,
    JobAlert,
    JobAlreadyRunningError,
    JobDefinition,
    JobName,
    JobRegistry,
    JobScheduler,
    UnknownJobError,
    failure_severity,
    log_alert,
)
from src.deadmansdrop.jobs.results import DistributionJobResult
from src.deadmansdrop.jobs.sweeps import SweepContext, build_default_registry
from src.deadmansdrop.notifications.push_sender import LoggingPushSender
from src.deadmansdrop.repositories.video_repository import VideoRepository
from src.deadmansdrop.storage.file_store import VideoFileStore
from tests.helpers.escrow import build_session_factory

pytestmark = pytest.mark.unit


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_hourly_schedule_fires_at_top_of_next_hour() -> None:
    assert HOURLY.next_after(utc(2026, 1, 17, 10, 15)) == utc(2026, 1, 17, 11, 0)
    assert HOURLY.next_after(utc(2026, 1, 17, 10, 0)) == utc(2026, 1, 17, 11, 0)
    assert HOURLY.expression == "0 * * * *"


def test_daily_schedule_rolls_over_to_next_day() -> None:
    assert DAILY_9AM.next_after(utc(2026, 1, 17, 8, 59)) == utc(2026, 1, 17, 9, 0)
    assert DAILY_9AM.next_after(utc(2026, 1, 17, 9, 0)) == utc(2026, 1, 18, 9, 0)
    assert DAILY_9AM.expression == "0 9 * * *"


def test_naive_moment_is_treated_as_utc() -> None:
    assert HOURLY.next_after(datetime(2026, 1, 17, 23, 30)) == utc(2026, 1, 18, 0, 0)


def test_schedule_rejects_out_of_range_fields() -> None:
    with pytest.raises(ValueError):
        CronSchedule(minute=60)
    with pytest.raises(ValueError):
        CronSchedule(minute=0, hour=24)


def test_registry_rejects_duplicate_and_unknown_names() -> None:
    registry = JobRegistry()
    registry.register(JobDefinition(name=JobName.DISTRIBUTION, schedule=HOURLY, handler=lambda: None))

    with pytest.raises(DuplicateJobError):
        registry.register(JobDefinition(name=JobName.DISTRIBUTION, schedule=HOURLY, handler=lambda: None))
    with pytest.raises(UnknownJobError):
        registry.get("nightly-report")
    with pytest.raises(UnknownJobError):
        registry.get(JobName.EXPIRATION_CLEANUP)


def test_run_job_now_records_success() -> None:
    registry = JobRegistry()
    registry.register(JobDefinition(name=JobName.DISTRIBUTION, schedule=HOURLY, handler=lambda: "done"))
    scheduler = JobScheduler(registry)

    result = asyncio.run(scheduler.run_job_now("distribution"))

    assert result == "done"
    (status,) = scheduler.status()
    assert status.run_count == 1
    assert status.error_count == 0
    assert status.last_success is not None
    assert status.is_running is False


def test_run_job_now_propagates_and_records_failure() -> None:
    def boom() -> None:
        raise RuntimeError("database unavailable")

    registry = JobRegistry()
    registry.register(JobDefinition(name=JobName.EXPIRATION_CLEANUP, schedule=HOURLY, handler=boom))
    scheduler = JobScheduler(registry)

    with pytest.raises(RuntimeError):
        asyncio.run(scheduler.run_job_now(JobName.EXPIRATION_CLEANUP))

    (status,) = scheduler.status()
    assert status.error_count == 1
    assert status.consecutive_failures == 1
    assert status.last_error == "database unavailable"


def test_concurrent_manual_run_is_rejected() -> None:
    release = threading.Event()
    started = threading.Event()

    def slow() -> str:
        started.set()
        release.wait(timeout=5)
        return "finished"

    registry = JobRegistry()
    registry.register(JobDefinition(name=JobName.DISTRIBUTION, schedule=HOURLY, handler=slow))
    scheduler = JobScheduler(registry)

    async def scenario() -> str:
        first = asyncio.create_task(scheduler.run_job_now(JobName.DISTRIBUTION))
        while not started.is_set():
            await asyncio.sleep(0.01)
        with pytest.raises(JobAlreadyRunningError):
            await scheduler.run_job_now(JobName.DISTRIBUTION)
        release.set()
        return await first

    assert asyncio.run(scenario()) == "finished"
    assert scheduler.status()[0].run_count == 1


def test_start_and_stop_run_on_start_job() -> None:
    calls: list[str] = []
    registry = JobRegistry()
    registry.register(
        JobDefinition(
            name=JobName.PUSH_NOTIFICATIONS,
            schedule=DAILY_9AM,
            handler=lambda: calls.append("ran"),
            run_on_start=True,
        )
    )
    scheduler = JobScheduler(registry)

    async def scenario() -> None:
        await scheduler.start()
        assert scheduler.is_running
        while not calls:
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())

    assert calls == ["ran"]
    assert scheduler.is_running is False


def test_default_registry_wires_three_sweeps(tmp_path: Path) -> None:
    session_factory = build_session_factory()
    context = SweepContext(
        video_repo=VideoRepository(session_factory),
        file_store=VideoFileStore(root=tmp_path),
        push_sender=LoggingPushSender(),
    )

    registry = build_default_registry(context)

    schedules = {definition.name: definition.schedule.expression for definition in registry}
    assert schedules == {
        JobName.DISTRIBUTION: "0 * * * *",
        JobName.PUSH_NOTIFICATIONS: "0 9 * * *",
        JobName.EXPIRATION_CLEANUP: "0 0 * * *",
    }
    assert not any(definition.run_on_start for definition in registry)
    assert registry.get(JobName.DISTRIBUTION).handler() == DistributionJobResult()


def failing_registry(outcomes: list[bool]) -> JobRegistry:
    """Job that fails or succeeds following ``outcomes`` in order."""
    remaining = list(outcomes)

    def handler() -> str:
        if not remaining.pop(0):
            raise RuntimeError("database unavailable")
        return "ok"

    registry = JobRegistry()
    registry.register(JobDefinition(name=JobName.DISTRIBUTION, schedule=HOURLY, handler=handler))
    return registry


def run_repeatedly(scheduler: JobScheduler, times: int) -> None:
    async def scenario() -> None:
        for _ in range(times):
            try:
                await scheduler.run_job_now(JobName.DISTRIBUTION)
            except RuntimeError:
                pass

    asyncio.run(scenario())


def test_failure_severity_escalates_with_the_streak() -> None:
    assert [failure_severity(n) for n in range(1, 7)] == [
        AlertSeverity.WARNING,
        AlertSeverity.WARNING,
        AlertSeverity.ERROR,
        AlertSeverity.ERROR,
        AlertSeverity.CRITICAL,
        AlertSeverity.CRITICAL,
    ]


def test_every_failed_run_raises_an_alert() -> None:
    alerts: list[JobAlert] = []
    scheduler = JobScheduler(failing_registry([False] * 5), alert_handlers=[alerts.append])

    run_repeatedly(scheduler, 5)

    assert [alert.kind for alert in alerts] == ["failure"] * 5
    assert [alert.consecutive_failures for alert in alerts] == [1, 2, 3, 4, 5]
    assert alerts[-1].severity is AlertSeverity.CRITICAL
    assert alerts[-1].error == "database unavailable"
    assert alerts[-1].error_count == 5
    assert alerts[-1].run_count == 5
    assert alerts[-1].last_success is None
    assert alerts[0].message == 'Job "distribution" failed (1 consecutive failure(s)): database unavailable'


def test_first_success_after_failures_raises_recovery_alert() -> None:
    alerts: list[JobAlert] = []
    scheduler = JobScheduler(failing_registry([True, False, False, True, True]), alert_handlers=[alerts.append])

    run_repeatedly(scheduler, 5)

    assert [alert.kind for alert in alerts] == ["failure", "failure", "recovered"]
    failure, _, recovered = alerts
    assert failure.last_success is not None
    assert recovered.severity is AlertSeverity.INFO
    assert recovered.consecutive_failures == 2
    assert recovered.message == 'Job "distribution" succeeded after 2 consecutive failure(s)'
    assert recovered.last_success == scheduler.status()[0].last_success


def test_broken_alert_handler_does_not_mask_job_error() -> None:
    delivered: list[JobAlert] = []

    def broken(alert: JobAlert) -> None:
        raise ConnectionError("pager unreachable")

    scheduler = JobScheduler(failing_registry([False]), alert_handlers=[broken, delivered.append])

    with pytest.raises(RuntimeError, match="database unavailable"):
        asyncio.run(scheduler.run_job_now(JobName.DISTRIBUTION))

    assert len(delivered) == 1
    assert scheduler.status()[0].consecutive_failures == 1


def test_alerts_are_logged_by_default(caplog: pytest.LogCaptureFixture) -> None:
    scheduler = JobScheduler(failing_registry([False, True]))

    with caplog.at_level(logging.INFO):
        run_repeatedly(scheduler, 2)

    alerts = [record for record in caplog.records if record.getMessage() == "scheduler.alert"]
    assert [(record.levelno, record.alert_kind) for record in alerts] == [
        (logging.WARNING, "failure"),
        (logging.INFO, "recovered"),
    ]
    assert alerts[0].consecutive_failures == 1


def test_log_alert_uses_critical_level_for_long_streaks(caplog: pytest.LogCaptureFixture) -> None:
    alert = JobAlert(
        job=JobName.EXPIRATION_CLEANUP,
        kind="failure",
        severity=failure_severity(6),
        message='Job "expiration-cleanup" failed (6 consecutive failure(s)): disk full',
        consecutive_failures=6,
        run_count=9,
        error_count=6,
        last_success=utc(2026, 1, 16, 0, 0),
        occurred_at=utc(2026, 1, 17, 0, 0),
        error="disk full",
    )

    with caplog.at_level(logging.INFO):
        log_alert(alert)

    (record,) = [record for record in caplog.records if record.getMessage() == "scheduler.alert"]
    assert record.levelno == logging.CRITICAL
    assert record.last_success == "2026-01-16T00:00:00+00:00"
