"""APScheduler-based interval scheduling for Auth0 syncs."""

from __future__ import annotations

import logging
import time
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from auth0_ingestion.config import IngestionConfig
from auth0_ingestion.db import Database
from auth0_ingestion.errors import ConfigurationFault, IntegrationValidationError

logger = logging.getLogger("ingestion.scheduler")

BACKOFF_BASE_S = 30
# Retrying cannot fix these.
FATAL_ERRORS = (ConfigurationFault, IntegrationValidationError)


def sync_with_retries(
    config: IngestionConfig,
    db: Optional[Database],
    sleep=time.sleep,
) -> Optional[dict[str, int]]:
    """Run a whole sync, retrying failed runs with exponential backoff.

    Returns the results, or None once retries are exhausted.
    """
    from auth0_ingestion.cli import run_sync

    max_retries = config.scheduler.max_retries
    for attempt in range(max_retries + 1):
        try:
            return run_sync(config, db)
        except FATAL_ERRORS:
            raise
        except Exception as exc:
            if attempt < max_retries:
                delay = BACKOFF_BASE_S * (2 ** attempt)
                logger.warning(
                    "Auth0 sync failed (attempt %d/%d), retrying in %ds: %s",
                    attempt + 1, max_retries, delay, exc,
                )
                sleep(delay)
            else:
                logger.error("Auth0 sync failed after %d retries: %s", max_retries, exc)
    return None


def _on_job_error(event) -> None:
    logger.error("Job %s raised an exception: %s", event.job_id, event.exception)


def build_scheduler(config: IngestionConfig, db: Optional[Database]) -> BlockingScheduler:
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_job(
        sync_with_retries,
        "interval",
        minutes=config.scheduler.auth0_interval_min,
        args=[config, db],
        id="auth0",
        max_instances=1,
        misfire_grace_time=config.scheduler.misfire_grace_time,
    )
    return scheduler


def start_scheduler(config: IngestionConfig, db: Optional[Database]) -> None:
    """Start the blocking scheduler; returns only when it is shut down."""
    scheduler = build_scheduler(config, db)
    logger.info("Starting scheduler with jobs: %s", [j.id for j in scheduler.get_jobs()])
    scheduler.start()
