"""Per-organization integration helpers.

- POST /api/v1/cloudinary/generate-upload-signature -> {signature, timestamp, apiKey}
- POST /api/v1/payu/token                           -> {access_token, expires_in}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.infra.providers.media import build_upload_signature

if TYPE_CHECKING:
    from src.gateway.middleware.org_context import OrgConnectionResolver
    from src.infra.providers.payments import PayUTokenClient
    from src.ports.credential_port import CredentialResolver

logger = logging.getLogger(__name__)

CLOUDINARY_PROVIDER = "CLOUDINARY"


def create_cloudinary_router(
    *,
    resolver: OrgConnectionResolver,
    credentials: CredentialResolver,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/cloudinary", tags=["integrations"])

    @router.post("/generate-upload-signature")
    async def generate_upload_signature(
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        creds = credentials.require(ctx.org_id, CLOUDINARY_PROVIDER, "API_KEY", "API_SECRET")
        return build_upload_signature(creds["API_KEY"], creds["API_SECRET"])

    return router


def create_payu_router(
    *,
    resolver: OrgConnectionResolver,
    token_client: PayUTokenClient,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/payu", tags=["integrations"])

    @router.post("/token")
    async def payu_token(
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        token = await token_client.fetch_token(ctx.org_id)
        logger.info("Issued PayU token for org %s", ctx.org_id)
        return token

    return router
