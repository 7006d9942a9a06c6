"""In-process scheduler for the periodic lifecycle sweeps."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterator, Literal, Protocol, Sequence

from ..exceptions import AppError, describe_error

logger = logging.getLogger(__name__)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


class JobName(str, Enum):
    DISTRIBUTION = "distribution"
    PUSH_NOTIFICATIONS = "push-notifications"
    EXPIRATION_CLEANUP = "expiration-cleanup"


class SchedulerError(AppError):
    """Base class for scheduler failures."""


class DuplicateJobError(SchedulerError):
    """Raised when a job name is registered twice."""


class UnknownJobError(SchedulerError):
    """Raised when a job name has no registration."""


class JobAlreadyRunningError(SchedulerError):
    """Raised when a manual run is requested while the job is executing."""


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def failure_severity(consecutive_failures: int) -> AlertSeverity:
    """Escalate with the failure streak: 1-2 warning, 3-4 error, 5+ critical."""
    if consecutive_failures >= 5:
        return AlertSeverity.CRITICAL
    if consecutive_failures >= 3:
        return AlertSeverity.ERROR
    return AlertSeverity.WARNING


@dataclass(slots=True, frozen=True)
class JobAlert:
    """Raised on every failed run and on the first success after failures."""

    job: JobName
    kind: Literal["failure", "recovered"]
    severity: AlertSeverity
    message: str
    consecutive_failures: int
    run_count: int
    error_count: int
    last_success: datetime | None
    occurred_at: datetime
    error: str | None = None


class AlertHandler(Protocol):
    def __call__(self, alert: JobAlert) -> None:
        ...


_ALERT_LEVELS = {
    AlertSeverity.INFO: logging.INFO,
    AlertSeverity.WARNING: logging.WARNING,
    AlertSeverity.ERROR: logging.ERROR,
    AlertSeverity.CRITICAL: logging.CRITICAL,
}


def log_alert(alert: JobAlert) -> None:
    """Default alert handler: one log record at the alert's severity."""
    logger.log(
        _ALERT_LEVELS[alert.severity],
        "scheduler.alert",
        extra={
            "job": alert.job.value,
            "alert_kind": alert.kind,
            "severity": alert.severity.value,
            "alert_message": alert.message,
            "consecutive_failures": alert.consecutive_failures,
            "run_count": alert.run_count,
            "error_count": alert.error_count,
            "last_success": alert.last_success.isoformat() if alert.last_success else None,
            "error": alert.error,
        },
    )


@dataclass(slots=True, frozen=True)
class CronSchedule:
    """Subset of cron: a fixed minute, optionally a fixed hour (UTC)."""

    minute: int
    hour: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute out of range: {self.minute}")
        if self.hour is not None and not 0 <= self.hour <= 23:
            raise ValueError(f"hour out of range: {self.hour}")

    @property
    def expression(self) -> str:
        hour = "*" if self.hour is None else str(self.hour)
        return f"{self.minute} {hour} * * *"

    def next_after(self, moment: datetime) -> datetime:
        """Return the first firing strictly after ``moment``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc)
        candidate = moment.replace(minute=self.minute, second=0, microsecond=0)
        if self.hour is None:
            if candidate <= moment:
                candidate += timedelta(hours=1)
            return candidate
        candidate = candidate.replace(hour=self.hour)
        if candidate <= moment:
            candidate += timedelta(days=1)
        return candidate


HOURLY = CronSchedule(minute=0)
DAILY_9AM = CronSchedule(minute=0, hour=9)
DAILY_MIDNIGHT = CronSchedule(minute=0, hour=0)


@dataclass(slots=True, frozen=True)
class JobDefinition:
    name: JobName
    schedule: CronSchedule
    handler: Callable[[], Any]
    run_on_start: bool = False


@dataclass(slots=True)
class JobStatus:
    name: JobName
    schedule: str
    is_running: bool = False
    run_count: int = 0
    error_count: int = 0
    consecutive_failures: int = 0
    last_run: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None


class JobRegistry:
    """Named job definitions, fixed before the scheduler starts."""

    def __init__(self) -> None:
        self._jobs: dict[JobName, JobDefinition] = {}

    def register(self, definition: JobDefinition) -> None:
        name = JobName(definition.name)
        if name in self._jobs:
            raise DuplicateJobError(f'job "{name.value}" is already registered')
        self._jobs[name] = definition
        logger.info(
            "scheduler.job.registered",
            extra={
                "job": name.value,
                "cron": definition.schedule.expression,
                "run_on_start": definition.run_on_start,
            },
        )

    def get(self, name: JobName | str) -> JobDefinition:
        try:
            return self._jobs[JobName(name)]
        except (KeyError, ValueError) as exc:
            raise UnknownJobError(f'job "{name}" is not registered') from exc

    def __iter__(self) -> Iterator[JobDefinition]:
        return iter(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)


@dataclass(slots=True)
class _JobState:
    definition: JobDefinition
    status: JobStatus
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class JobScheduler:
    """Run each registered job on its own asyncio loop.

    Handlers are synchronous and execute in a worker thread. A job never
    overlaps itself: a firing that arrives while the previous run is still
    going is skipped. A failed run is recorded and the job simply waits for
    its next firing.

    Every failed run and the first success after a failure streak are passed
    to ``alert_handlers`` (default: :func:`log_alert`).
    """

    def __init__(
        self,
        registry: JobRegistry,
        *,
        clock: Callable[[], datetime] | None = None,
        alert_handlers: Sequence[AlertHandler] | None = None,
    ) -> None:
        self._registry = registry
        self._clock = clock or _default_clock
        self._alert_handlers: tuple[AlertHandler, ...] = (
            tuple(alert_handlers) if alert_handlers is not None else (log_alert,)
        )
        self._states: dict[JobName, _JobState] = {
            definition.name: _JobState(
                definition=definition,
                status=JobStatus(name=definition.name, schedule=definition.schedule.expression),
            )
            for definition in registry
        }
        self._shutdown = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            logger.warning("scheduler.already_started")
            return
        self._shutdown.clear()
        for state in self._states.values():
            self._tasks.append(
                asyncio.create_task(self._run_loop(state), name=f"job:{state.definition.name.value}")
            )
        logger.info("scheduler.started", extra={"job_count": len(self._tasks)})

    async def stop(self) -> None:
        if not self._tasks:
            return
        self._shutdown.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")

    async def run_job_now(self, name: JobName | str) -> Any:
        """Run a job immediately; raises ``JobAlreadyRunningError`` if busy."""
        state = self._state(name)
        if state.lock.locked():
            raise JobAlreadyRunningError(f'job "{state.definition.name.value}" is already running')
        return await self._execute(state, propagate=True)

    def status(self) -> list[JobStatus]:
        return [state.status for state in self._states.values()]

    def _state(self, name: JobName | str) -> _JobState:
        definition = self._registry.get(name)
        return self._states[definition.name]

    async def _run_loop(self, state: _JobState) -> None:
        name = state.definition.name.value
        if state.definition.run_on_start:
            await self._fire(state)
        while not self._shutdown.is_set():
            now = self._clock()
            next_run = state.definition.schedule.next_after(now)
            delay = max(0.0, (next_run - now).total_seconds())
            logger.debug(
                "scheduler.job.sleeping",
                extra={"job": name, "next_run": next_run.isoformat()},
            )
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
            except asyncio.TimeoutError:
                await self._fire(state)
            else:
                break

    async def _fire(self, state: _JobState) -> None:
        if state.lock.locked():
            logger.warning(
                "scheduler.job.overlap_skipped",
                extra={"job": state.definition.name.value},
            )
            return
        # failures are recorded in the job status; the next firing is the retry
        await self._execute(state, propagate=False)

    async def _execute(self, state: _JobState, *, propagate: bool) -> Any:
        status = state.status
        name = state.definition.name.value
        async with state.lock:
            status.is_running = True
            status.last_run = self._clock()
            status.run_count += 1
            started = self._clock()
            logger.info("scheduler.job.started", extra={"job": name})
            try:
                result = await asyncio.to_thread(state.definition.handler)
            except Exception as exc:
                status.error_count += 1
                status.consecutive_failures += 1
                status.last_error = describe_error(exc)
                logger.exception(
                    "scheduler.job.failed",
                    extra={
                        "job": name,
                        "consecutive_failures": status.consecutive_failures,
                    },
                )
                self._alert(
                    state,
                    kind="failure",
                    severity=failure_severity(status.consecutive_failures),
                    message=(
                        f'Job "{name}" failed '
                        f"({status.consecutive_failures} consecutive failure(s)): {status.last_error}"
                    ),
                    consecutive_failures=status.consecutive_failures,
                    error=status.last_error,
                )
                if propagate:
                    raise
                return None
            finally:
                status.is_running = False
            recovered_after = status.consecutive_failures
            status.consecutive_failures = 0
            status.last_success = self._clock()
            status.last_error = None
            logger.info(
                "scheduler.job.completed",
                extra={
                    "job": name,
                    "duration_ms": int((self._clock() - started).total_seconds() * 1000),
                },
            )
            if recovered_after:
                self._alert(
                    state,
                    kind="recovered",
                    severity=AlertSeverity.INFO,
                    message=f'Job "{name}" succeeded after {recovered_after} consecutive failure(s)',
                    consecutive_failures=recovered_after,
                )
            return result

    def _alert(
        self,
        state: _JobState,
        *,
        kind: Literal["failure", "recovered"],
        severity: AlertSeverity,
        message: str,
        consecutive_failures: int,
        error: str | None = None,
    ) -> None:
        status = state.status
        alert = JobAlert(
            job=JobName(state.definition.name),
            kind=kind,
            severity=severity,
            message=message,
            consecutive_failures=consecutive_failures,
            run_count=status.run_count,
            error_count=status.error_count,
            last_success=status.last_success,
            occurred_at=self._clock(),
            error=error,
        )
        for handler in self._alert_handlers:
            try:
                handler(alert)
            except Exception:
                # a broken alert channel must not change the job outcome
                logger.exception("scheduler.alert.handler_failed", extra={"job": alert.job.value})


__all__ = [
    "DAILY_9AM",
    "DAILY_MIDNIGHT",
    "HOURLY",
    "AlertHandler",
    "AlertSeverity",
    "CronSchedule",
    "DuplicateJobError",
    "JobAlert",
    "JobAlreadyRunningError",
    "JobDefinition",
    "JobName",
    "JobRegistry",
    "JobScheduler",
    "JobStatus",
    "SchedulerError",
    "UnknownJobError",
    "failure_severity",
    "log_alert",
]
