"""Lifecycle sweeps and their scheduler."""

from .distribution_job import process_distribution
from .expiration_job import process_expiration
from .notification_job import process_notifications
from .results import DistributionJobResult, ExpirationJobResult, NotificationJobResult, SweepResult
from .scheduler import JobName, JobRegistry, JobScheduler
from .sweeps import SweepContext, build_default_registry

__all__ = [
    "DistributionJobResult",
    "ExpirationJobResult",
    "JobName",
    "JobRegistry",
    "JobScheduler",
    "NotificationJobResult",
    "SweepContext",
    "SweepResult",
    "build_default_registry",
    "process_distribution",
    "process_expiration",
    "process_notifications",
]
