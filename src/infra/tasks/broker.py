"""Celery application for the ask/ctx worker.

The ``celery -A`` CLI imports this module:

    celery -A src.infra.tasks.broker worker --concurrency 4

Jobs report their outcome by writing the job document, so task results
are never stored; the broker is the only Redis role Celery plays.
"""

from __future__ import annotations

import os

from celery import Celery

DEFAULT_BROKER_URL = "redis://localhost:6379/0"


def create_celery_app(broker_url: str) -> Celery:
    celery = Celery("orgbase", broker=broker_url)
    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        task_ignore_result=True,
        # A job whose worker dies mid-run is redelivered, not lost.
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        timezone="UTC",
        enable_utc=True,
    )
    celery.autodiscover_tasks(["src.infra.tasks"])
    return celery


app = create_celery_app(os.environ.get("REDIS_URL", DEFAULT_BROKER_URL))
