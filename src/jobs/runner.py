"""Job submission: the seam between HTTP handlers and AI job workers.

Handlers only ever call ``runner.submit(spec)``; the runner decides
where the work happens.

Runners:
    AsyncioJobRunner - in-process asyncio tasks (dev, tests, single node)
    CeleryJobRunner  - Redis-brokered Celery worker (src.infra.tasks)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from src.jobs.worker import AiJobWorker

logger = logging.getLogger(__name__)

JOB_KIND_ASK = "ask"
JOB_KIND_CTX = "ctx"


@dataclass(frozen=True)
class JobSpec:
    """Everything a worker needs to complete one job; JSON-serializable."""

    kind: str  # "ask" | "ctx"
    org_id: str
    session_id: str
    job_id: str
    model: str
    history: list[dict[str, str]] = field(default_factory=list)
    message: str = ""
    system_prompt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> JobSpec:
        return cls(
            kind=raw["kind"],
            org_id=raw["org_id"],
            session_id=raw["session_id"],
            job_id=raw["job_id"],
            model=raw["model"],
            history=list(raw.get("history") or []),
            message=raw.get("message") or "",
            system_prompt=raw.get("system_prompt"),
        )


class JobRunner(Protocol):
    """Protocol for job execution backends."""

    def submit(self, spec: JobSpec) -> None:
        """Schedule the job and return without waiting for it."""
        ...


class AsyncioJobRunner:
    """Run jobs as background tasks on the current event loop.

    Task references are kept until completion so they are not garbage
    collected mid-flight.
    """

    def __init__(self, worker: AiJobWorker) -> None:
        self._worker = worker
        self._tasks: set[asyncio.Task[Any]] = set()

    def submit(self, spec: JobSpec) -> None:
        task = asyncio.create_task(self._worker.run(spec), name=f"ai-job-{spec.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Submitted %s job %s", spec.kind, spec.job_id)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every submitted job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
