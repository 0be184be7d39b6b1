"""FastAPI application factory.

- Tenant API:  /api/v1/*         (JWT + X-ORG-ID bound to the active binding)
- Admin API:   /api/v1/admin/*   (JWT + org + source + admin role)
- Public API:  /api/v1/public/*  (org + source, no JWT)
- healthz, metrics, docs: exempt from auth

Every error response has the shape ``{"error": "<message>"}``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match

from src.gateway.api.ai_sessions import create_ai_sessions_router
from src.gateway.api.integrations import create_cloudinary_router, create_payu_router
from src.gateway.api.notifications import create_resend_router, create_twilio_router
from src.gateway.api.objects import create_objects_router, create_public_objects_router
from src.gateway.api.orgs import create_admin_router, create_auth_router
from src.gateway.metrics.golden_signals import golden_signals_middleware
from src.gateway.middleware.auth import JWTAuthMiddleware, extract_bearer
from src.gateway.middleware.org_context import OrgConnectionResolver
from src.gateway.middleware.rate_limit import RateLimitMiddleware
from src.gateway.middleware.rbac import RoleGate
from src.shared.errors import AuthenticationError, OrgBaseError, PayloadTooLargeError
from src.shared.logging.error_handler import log_structured_error
from src.shared.logging.request_context import request_context

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from src.dispatch.batch import BatchDispatcher
    from src.infra.providers.payments import PayUTokenClient
    from src.jobs.orchestrator import AsyncJobOrchestrator
    from src.ports.credential_port import CredentialResolver
    from src.ports.directory_port import DirectoryPort
    from src.ports.object_store_port import ObjectStorePort
    from src.ports.provider_port import ProviderAdapter

logger = logging.getLogger(__name__)

_EXEMPT_PATHS = frozenset({"/healthz", "/metrics", "/docs", "/openapi.json", "/redoc"})
_EXEMPT_PREFIXES = ("/api/v1/public/",)
REQUEST_ID_HEADER = "X-Request-ID"
_DEFAULT_MAX_BODY_BYTES = 1024 * 1024

HttpMiddleware = Callable[
    [Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]
]


@dataclass(frozen=True)
class GatewayServices:
    """Everything the routers need, built once per process."""

    store: ObjectStorePort
    directory: DirectoryPort
    credentials: CredentialResolver
    orchestrator: AsyncJobOrchestrator
    email: ProviderAdapter
    sms: ProviderAdapter
    dispatcher: BatchDispatcher
    payu: PayUTokenClient


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    *,
    services: GatewayServices,
    jwt_secret: str,
    cors_origins: list[str] | None = None,
    max_body_bytes: int = _DEFAULT_MAX_BODY_BYTES,
    rate_limit: HttpMiddleware | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Stores, resolvers and adapters shared by all routers.
        jwt_secret: JWT signing secret.
        cors_origins: Allowed CORS origins. No CORS middleware when empty.
        max_body_bytes: Requests declaring a larger Content-Length get 413.
        rate_limit: Rate limiting middleware; defaults to the in-memory
            sliding window limiter.
        lifespan: Async context manager factory for startup/shutdown lifecycle.

    Returns:
        Configured FastAPI application with all routers mounted.
    """
    if not jwt_secret:
        msg = "jwt_secret must be provided"
        raise ValueError(msg)

    app = FastAPI(
        title="OrgBase API",
        description="Multi-tenant object, AI session and notification backend",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    jwt_auth = JWTAuthMiddleware(
        secret=jwt_secret,
        exempt_paths=_EXEMPT_PATHS,
        exempt_prefixes=_EXEMPT_PREFIXES,
    )
    resolver = OrgConnectionResolver(store=services.store, directory=services.directory)
    gate = RoleGate(directory=services.directory)
    app.state.services = services
    app.state.resolver = resolver
    app.state.role_gate = gate

    # -- Error handlers --

    @app.exception_handler(OrgBaseError)
    async def _orgbase_error(request: Request, exc: OrgBaseError) -> JSONResponse:
        if exc.status_code >= 500:
            log_structured_error(
                logger,
                exc,
                error_code=exc.code,
                context={"path": request.url.path, "method": request.method},
            )
        return _error(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        else:
            message = "Invalid request"
        return _error(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail or f"HTTP {exc.status_code}"))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log_structured_error(
            logger,
            exc,
            error_code="UNHANDLED",
            context={"path": request.url.path, "method": request.method},
        )
        return _error(500, "Internal server error")

    # -- Middleware (registered innermost first) --

    app.middleware("http")(rate_limit or RateLimitMiddleware())

    @app.middleware("http")
    async def jwt_auth_middleware(request: Request, call_next: Any) -> Response:
        path = request.url.path

        # CORS preflight passes through to CORSMiddleware
        if request.method == "OPTIONS" or jwt_auth.is_exempt(path):
            return await call_next(request)

        # Unknown paths are a 404, not a 401
        route_matched = any(route.matches(request.scope)[0] != Match.NONE for route in app.routes)
        if not route_matched:
            return await call_next(request)

        try:
            payload = jwt_auth.authenticate(
                token=extract_bearer(request.headers.get("authorization")),
                path=path,
            )
        except AuthenticationError as exc:
            return _error(exc.status_code, str(exc))

        if payload is not None:
            request.state.user_id = payload.user_id
        return await call_next(request)

    app.middleware("http")(golden_signals_middleware)

    @app.middleware("http")
    async def body_size_middleware(request: Request, call_next: Any) -> Response:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_body_bytes:
            return _error(413, str(PayloadTooLargeError(int(declared), max_body_bytes)))
        return await call_next(request)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Response:
        with request_context(request.headers.get(REQUEST_ID_HEADER)) as request_id:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
            allow_headers=["Authorization", "Content-Type", "X-ORG-ID", "X-SOURCE"],
        )

    # -- Exempt routes --

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics", tags=["system"], include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # -- Routers --

    app.include_router(create_auth_router(resolver=resolver, directory=services.directory))
    app.include_router(create_objects_router(resolver=resolver, gate=gate))
    app.include_router(create_public_objects_router(resolver=resolver))
    app.include_router(
        create_ai_sessions_router(resolver=resolver, orchestrator=services.orchestrator)
    )
    app.include_router(
        create_resend_router(
            resolver=resolver,
            credentials=services.credentials,
            adapter=services.email,
            dispatcher=services.dispatcher,
        )
    )
    app.include_router(
        create_twilio_router(
            resolver=resolver,
            credentials=services.credentials,
            adapter=services.sms,
            dispatcher=services.dispatcher,
        )
    )
    app.include_router(
        create_cloudinary_router(resolver=resolver, credentials=services.credentials)
    )
    app.include_router(create_payu_router(resolver=resolver, token_client=services.payu))
    app.include_router(
        create_admin_router(resolver=resolver, gate=gate, directory=services.directory)
    )

    return app
