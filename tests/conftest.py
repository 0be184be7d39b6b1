"""Root conftest - shared fixtures for all test layers.

Markers:
    @pytest.mark.unit        - No external deps
    @pytest.mark.integration - Several layers wired together in-process

The ``harness`` fixture assembles the full gateway on in-memory stores,
fake LLM/provider adapters and a mocked PayU transport.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.dispatch.batch import BatchDispatcher
from src.gateway.app import GatewayServices, create_app
from src.gateway.middleware.auth import encode_token
from src.gateway.middleware.org_context import ORG_HEADER, SOURCE_HEADER
from src.gateway.middleware.rate_limit import RateLimitMiddleware
from src.infra.cache.memory import InMemoryStorageAdapter
from src.infra.credentials.env import EnvCredentialResolver
from src.infra.directory.memory import InMemoryDirectory
from src.infra.objects.memory_store import InMemoryObjectStore
from src.infra.providers.payments import PayUTokenClient
from src.jobs.orchestrator import AsyncJobOrchestrator
from src.jobs.runner import AsyncioJobRunner
from src.jobs.worker import AiJobWorker
from tests.fakes import FakeEmailAdapter, FakeLLM, FakeSmsAdapter

JWT_SECRET = "test-secret-key-for-unit-tests-only"  # noqa: S105
ORG_ID = "org_alpha"
OTHER_ORG_ID = "org_beta"
SOURCE = "unit-tests"

CREDENTIALS_ENV: dict[str, str] = {
    "org_alpha_RESEND_API_KEY": "re_test_key",
    "org_alpha_TWILIO_API_USERNAME": "AC_test",
    "org_alpha_TWILIO_API_PASSWORD": "twilio-secret",
    "org_alpha_TWILIO_API_PHONE_FROM": "15550001111",
    "org_alpha_CLOUDINARY_API_KEY": "cloud-key",
    "org_alpha_CLOUDINARY_API_SECRET": "cloud-secret",
    "org_alpha_OPENAI_API_KEY": "sk-test",
    "org_alpha_PAYU_CLIENT_ID": "payu-client",
    "org_alpha_PAYU_CLIENT_SECRET": "payu-secret",
    "org_alpha_PAYU_MERCHANT_POS_ID": "pos-1",
    "org_alpha_PAYU_SECOND_KEY": "second",
    "org_alpha_PAYU_IS_SANDBOX": "true",
}


def payu_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"access_token": "payu-token", "expires_in": 43199})


@dataclass
class Harness:
    """The assembled gateway plus handles on its collaborators."""

    store: InMemoryObjectStore
    directory: InMemoryDirectory
    llm: FakeLLM
    runner: AsyncioJobRunner
    email: FakeEmailAdapter
    sms: FakeSmsAdapter
    environ: dict[str, str]
    payu_client: httpx.AsyncClient
    app: Any = None
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(
        self,
        user_id: str | None = "user_1",
        *,
        org_id: str | None = ORG_ID,
        source: str | None = SOURCE,
    ) -> dict[str, str]:
        headers: dict[str, str] = {}
        if user_id is not None:
            token = encode_token(user_id=user_id, secret=JWT_SECRET)
            headers["Authorization"] = f"Bearer {token}"
        if org_id is not None:
            headers[ORG_HEADER] = org_id
        if source is not None:
            headers[SOURCE_HEADER] = source
        return headers

    async def member(self, user_id: str = "user_1", *, org_id: str = ORG_ID, role: str = "USER"):
        """Bind ``user_id`` to ``org_id`` (active) with ``role``."""
        await self.directory.bind_org(user_id, org_id, default_role=role)
        await self.directory.set_role(user_id, org_id, role)


@pytest.fixture
def environ() -> dict[str, str]:
    return dict(CREDENTIALS_ENV)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory([ORG_ID, OTHER_ORG_ID])


@pytest.fixture
def credentials(environ: dict[str, str]) -> EnvCredentialResolver:
    return EnvCredentialResolver(environ)


@pytest.fixture
async def harness(
    store: InMemoryObjectStore,
    directory: InMemoryDirectory,
    credentials: EnvCredentialResolver,
    environ: dict[str, str],
) -> AsyncIterator[Harness]:
    llm = FakeLLM()
    worker = AiJobWorker(store=store, llm=llm, credentials=credentials)
    runner = AsyncioJobRunner(worker)
    payu_client = httpx.AsyncClient(transport=httpx.MockTransport(payu_handler))
    h = Harness(
        store=store,
        directory=directory,
        llm=llm,
        runner=runner,
        email=FakeEmailAdapter(fail_when=lambda p: str(p.get("to", "")).startswith("bad")),
        sms=FakeSmsAdapter(fail_when=lambda p: str(p.get("to", "")).startswith("bad")),
        environ=environ,
        payu_client=payu_client,
    )
    services = GatewayServices(
        store=store,
        directory=directory,
        credentials=credentials,
        orchestrator=AsyncJobOrchestrator(
            runner=runner, credentials=credentials, max_payload_bytes=64 * 1024
        ),
        email=h.email,
        sms=h.sms,
        dispatcher=BatchDispatcher(),
        payu=PayUTokenClient(
            client=payu_client, credentials=credentials, cache=InMemoryStorageAdapter()
        ),
    )
    h.app = create_app(
        services=services,
        jwt_secret=JWT_SECRET,
        max_body_bytes=256 * 1024,
        rate_limit=RateLimitMiddleware(),
    )
    yield h
    await runner.drain()
    await payu_client.aclose()


@pytest.fixture
async def client(harness: Harness) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=harness.app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
