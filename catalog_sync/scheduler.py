"""APScheduler-based interval scheduling for provider runs."""

from __future__ import annotations

import asyncio
import logging
import time

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from catalog_sync.base_provider import BaseEntityProvider
from catalog_sync.config import CatalogSyncConfig
from catalog_sync.db import Database

logger = logging.getLogger("catalog_sync.scheduler")

BACKOFF_BASE_S = 30


def _run_provider(provider: BaseEntityProvider, db: Database, max_retries: int) -> None:
    """Run a provider pass, re-running it with backoff when it fails."""
    name = provider.get_provider_name()
    for attempt in range(max_retries + 1):
        try:
            asyncio.run(provider.run_with_tracking(db))
            return
        except Exception as exc:
            if attempt < max_retries:
                delay = BACKOFF_BASE_S * (2 ** attempt)
                logger.warning(
                    "Run %s failed (attempt %d/%d), retrying in %ds: %s",
                    name, attempt + 1, max_retries, delay, exc,
                )
                time.sleep(delay)
            else:
                logger.error("Run %s failed after %d retries: %s", name, max_retries, exc)


def _on_job_error(event) -> None:
    """Log job execution errors."""
    logger.error(
        "Job %s raised an exception: %s",
        event.job_id,
        event.exception,
    )


def build_scheduler(config: CatalogSyncConfig, db: Database) -> BlockingScheduler:
    """One interval job per configured provider; a job never overlaps itself."""
    from catalog_sync.cli import _connected_provider

    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    sched = config.scheduler

    if config.okta:
        provider = _connected_provider("okta_group", config, db)
        scheduler.add_job(
            _run_provider,
            "interval",
            minutes=sched.okta_group_interval_min,
            args=[provider, db, sched.max_retries],
            id="okta_group",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=sched.misfire_grace_time,
        )

    return scheduler


def start_scheduler(config: CatalogSyncConfig, db: Database) -> None:
    """Start the blocking scheduler with interval jobs for each provider."""
    scheduler = build_scheduler(config, db)
    logger.info("Starting scheduler with jobs: %s",
                [j.id for j in scheduler.get_jobs()])
    scheduler.start()
