"""Celery-backed job runner.

- Send async task -> Worker executes -> job document updated by the worker
- Job status is read from the object store, never from the Celery backend

The real Celery app lives in broker.py; InMemoryTaskExecutor stands in
for it in unit tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from src.jobs.runner import JobSpec

logger = logging.getLogger(__name__)

RUN_JOB_TASK = "ai.run_job"


class TaskExecutor(Protocol):
    """Protocol for task execution backends.

    Production: Celery app (``celery.Celery.send_task``)
    Testing: InMemoryTaskExecutor
    """

    def send_task(
        self,
        name: str,
        args: tuple[Any, ...] | None = None,
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """Submit a task for async execution."""
        ...


@dataclass
class SentTask:
    """A task captured by InMemoryTaskExecutor."""

    name: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class InMemoryTaskExecutor:
    """Records submitted tasks instead of brokering them."""

    def __init__(self) -> None:
        self.sent: list[SentTask] = []

    def send_task(
        self,
        name: str,
        args: tuple[Any, ...] | None = None,
        kwargs: dict[str, Any] | None = None,
    ) -> SentTask:
        task = SentTask(name=name, args=tuple(args or ()), kwargs=dict(kwargs or {}))
        self.sent.append(task)
        return task


class CeleryJobRunner:
    """JobRunner that ships JobSpecs to the Celery worker container."""

    def __init__(self, executor: TaskExecutor) -> None:
        self._executor = executor

    def submit(self, spec: JobSpec) -> None:
        self._executor.send_task(RUN_JOB_TASK, kwargs={"spec": spec.to_dict()})
        logger.debug("Queued %s job %s on Celery", spec.kind, spec.job_id)
