"""Celery task definitions executed by the worker container."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.infra.tasks.broker import app
from src.infra.tasks.celery_app import RUN_JOB_TASK

logger = logging.getLogger(__name__)


async def _run(spec_dict: dict[str, Any]) -> str:
    # Deferred: src.main wires the whole application.
    from src.jobs.runner import JobSpec
    from src.main import build_worker
    from src.shared.config import AppSettings

    worker, close = await build_worker(AppSettings.from_env())
    try:
        status = await worker.run(JobSpec.from_dict(spec_dict))
    finally:
        await close()
    return status.value


@app.task(name=RUN_JOB_TASK)
def run_job(spec: dict[str, Any]) -> str:
    """Complete one ask/ctx job and return the status it wrote."""
    logger.info("Worker picked up %s job %s", spec.get("kind"), spec.get("job_id"))
    return asyncio.run(_run(spec))
