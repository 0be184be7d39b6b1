"""Application composition root -- wires all layers into a runnable FastAPI app.

- Reads configuration via AppSettings.from_env()
- DATABASE_URL set: PostgreSQL stores + Redis cache
- DATABASE_URL empty: in-memory stores seeded from KNOWN_ORGS (dev/tests)
- JOB_BACKEND selects the in-process asyncio runner or the Celery worker

Entry points:
    uvicorn src.main:build_app --factory --host 0.0.0.0 --port 8000
    celery -A src.infra.tasks.broker worker   (calls build_worker per job)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from src.dispatch.batch import BatchDispatcher
from src.gateway.app import GatewayServices, create_app
from src.infra.cache.memory import InMemoryStorageAdapter
from src.infra.cache.redis import RedisStorageAdapter
from src.infra.credentials.env import EnvCredentialResolver
from src.infra.db import create_db_engine, create_schema, create_session_factory
from src.infra.directory.memory import InMemoryDirectory
from src.infra.directory.pg import PgDirectory
from src.infra.objects.memory_store import InMemoryObjectStore
from src.infra.objects.pg_store import PgObjectStore
from src.infra.providers.email import ResendEmailAdapter
from src.infra.providers.llm import LiteLLMChatAdapter
from src.infra.providers.payments import PayUTokenClient
from src.infra.providers.sms import TwilioSmsAdapter
from src.jobs.orchestrator import AsyncJobOrchestrator
from src.jobs.runner import AsyncioJobRunner
from src.jobs.worker import AiJobWorker
from src.shared.config import AppSettings
from src.shared.logging.setup import configure_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine

    from src.jobs.runner import JobRunner
    from src.ports.directory_port import DirectoryPort
    from src.ports.object_store_port import ObjectStorePort
    from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Process-wide services plus the resources that need closing."""

    settings: AppSettings
    gateway: GatewayServices
    runner: JobRunner
    http_client: httpx.AsyncClient
    cache: StoragePort
    engine: AsyncEngine | None = None

    async def startup(self) -> None:
        """Create the schema and register KNOWN_ORGS when running on PostgreSQL."""
        if self.engine is None:
            return
        await create_schema(self.engine)
        directory = self.gateway.directory
        if isinstance(directory, PgDirectory):
            for org_id in self.settings.known_orgs:
                await directory.register_org(org_id)

    async def aclose(self) -> None:
        if isinstance(self.runner, AsyncioJobRunner):
            await self.runner.drain()
        await self.http_client.aclose()
        if isinstance(self.cache, RedisStorageAdapter):
            await self.cache.close()
        if self.engine is not None:
            await self.engine.dispose()


def _build_stores(
    settings: AppSettings,
) -> tuple[ObjectStorePort, DirectoryPort, AsyncEngine | None]:
    if not settings.database_url:
        logger.warning("DATABASE_URL not set: using in-memory stores")
        return InMemoryObjectStore(), InMemoryDirectory(settings.known_orgs), None
    engine = create_db_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    return (
        PgObjectStore(session_factory=session_factory),
        PgDirectory(session_factory=session_factory),
        engine,
    )


def _build_runner(settings: AppSettings, worker: AiJobWorker) -> JobRunner:
    if settings.job_backend == "celery":
        # Deferred: importing the broker module creates the Celery app.
        from src.infra.tasks import CeleryJobRunner
        from src.infra.tasks.broker import app as celery_app

        return CeleryJobRunner(celery_app)
    return AsyncioJobRunner(worker)


def build_services(settings: AppSettings) -> AppServices:
    """Instantiate every adapter and domain service.

    This function is the single composition root. No other module
    instantiates adapters.
    """
    store, directory, engine = _build_stores(settings)
    credentials = EnvCredentialResolver()
    cache: StoragePort = (
        RedisStorageAdapter(settings.redis_url) if engine is not None else InMemoryStorageAdapter()
    )
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_s)

    worker = AiJobWorker(
        store=store,
        llm=LiteLLMChatAdapter(),
        credentials=credentials,
        default_system_prompt=settings.ai_system_prompt,
    )
    runner = _build_runner(settings, worker)
    orchestrator = AsyncJobOrchestrator(
        runner=runner,
        credentials=credentials,
        default_model=settings.ai_default_model,
        max_payload_bytes=settings.max_body_bytes,
    )

    gateway = GatewayServices(
        store=store,
        directory=directory,
        credentials=credentials,
        orchestrator=orchestrator,
        email=ResendEmailAdapter(client=http_client),
        sms=TwilioSmsAdapter(client=http_client),
        dispatcher=BatchDispatcher(max_concurrency=settings.batch_max_concurrency),
        payu=PayUTokenClient(client=http_client, credentials=credentials, cache=cache),
    )
    return AppServices(
        settings=settings,
        gateway=gateway,
        runner=runner,
        http_client=http_client,
        cache=cache,
        engine=engine,
    )


def build_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the application: instantiate adapters, wire dependencies, mount routers."""
    settings = settings or AppSettings.from_env()
    configure_logging(settings.log_level)
    services = build_services(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await services.startup()
        try:
            yield
        finally:
            await services.aclose()

    application = create_app(
        services=services.gateway,
        jwt_secret=settings.jwt_secret,
        cors_origins=settings.cors_origins,
        max_body_bytes=settings.max_body_bytes,
        lifespan=lifespan,
    )
    logger.info(
        "OrgBase app assembled: %d routes, job backend %s",
        len(application.routes),
        settings.job_backend,
    )
    return application


async def build_worker(
    settings: AppSettings,
) -> tuple[AiJobWorker, Callable[[], Awaitable[None]]]:
    """Job worker for the Celery container, plus a coroutine that releases it."""
    configure_logging(settings.log_level)
    store, _, engine = _build_stores(settings)
    worker = AiJobWorker(
        store=store,
        llm=LiteLLMChatAdapter(),
        credentials=EnvCredentialResolver(),
        default_system_prompt=settings.ai_system_prompt,
    )

    async def close() -> None:
        if engine is not None:
            await engine.dispose()

    return worker, close
