"""Lifecycle helpers starting the sweep scheduler with the FastAPI app."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .jobs.scheduler import JobScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def scheduler_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start ``app.state.scheduler`` (if any) and stop it on shutdown."""

    config = getattr(app.state, "config", None)
    scheduler: JobScheduler | None = getattr(app.state, "scheduler", None)
    enabled = bool(config and config.scheduler_enabled) and not getattr(
        app.state, "disable_scheduler", False
    )
    if scheduler is not None and enabled:
        await scheduler.start()
    else:
        logger.info("scheduler.startup_skipped")
    try:
        yield
    finally:
        if scheduler is not None and scheduler.is_running:
            await scheduler.stop()


__all__ = ["scheduler_lifespan"]
