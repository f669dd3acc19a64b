"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from storeops.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("storeops", broker=broker_url, backend=backend_url, include=["storeops.jobs.nightly"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "nightly-ingest": {
        "task": "storeops.jobs.nightly.run_nightly",
        "schedule": crontab(hour=int(os.environ.get("INGEST_HOUR", "2")), minute=int(os.environ.get("INGEST_MINUTE", "15"))),
    },
}


@celery_app.task(name="storeops.jobs.nightly.run_nightly")
def run_nightly_task():  # pragma: no cover - executed by worker
    import asyncio

    from storeops.jobs.nightly import run_nightly

    asyncio.run(run_nightly())
