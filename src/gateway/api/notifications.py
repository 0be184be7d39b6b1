"""Outbound notification API (email via Resend, SMS via Twilio).

- POST /api/v1/resend/send-email  -> {status: sent, id}
- POST /api/v1/resend/send-batch  -> batch report, receipts under ``id``
- POST /api/v1/twilio/send-sms    -> {status: sent, sid}
- POST /api/v1/twilio/send-batch  -> batch report, receipts under ``sid``

Credentials are resolved once per request for the caller's organization.
A batch never fails as a whole because of one recipient.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from src.dispatch.batch import BatchDispatcher
    from src.gateway.middleware.org_context import OrgConnectionResolver
    from src.ports.credential_port import CredentialResolver
    from src.ports.provider_port import ProviderAdapter
    from src.shared.types import ProviderReceipt

logger = logging.getLogger(__name__)


class SendEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Any = None
    subject: Any = None
    html: Any = None
    sender: Any = Field(default=None, alias="from")
    scheduled_at: Any = Field(default=None, alias="scheduledAt")


class SendEmailBatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipients: Any = None
    subject: Any = None
    html: Any = None
    sender: Any = Field(default=None, alias="from")
    scheduled_at: Any = Field(default=None, alias="scheduledAt")


class SendSmsRequest(BaseModel):
    to: Any = None
    body: Any = None


class SendSmsBatchRequest(BaseModel):
    recipients: Any = None
    body: Any = None


def _credentials_for(
    credentials: CredentialResolver, ctx: RequestContext, adapter: ProviderAdapter
) -> dict[str, str]:
    return credentials.require(ctx.org_id, adapter.provider, *adapter.credential_keys)


def _recipients(raw: Any) -> list[str]:
    if not isinstance(raw, list) or not raw:
        return []
    return [str(r) for r in raw]


def create_resend_router(
    *,
    resolver: OrgConnectionResolver,
    credentials: CredentialResolver,
    adapter: ProviderAdapter,
    dispatcher: BatchDispatcher,
) -> APIRouter:
    """Email routes backed by a Resend adapter."""
    router = APIRouter(prefix="/api/v1/resend", tags=["notifications"])

    @router.post("/send-email")
    async def send_email(
        body: SendEmailRequest,
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        if not (body.to and body.subject and body.html and body.sender):
            raise ValidationError("to, subject, from, and html are required in body")
        creds = _credentials_for(credentials, ctx, adapter)
        receipt = await adapter.send(
            {
                "to": body.to,
                "from": body.sender,
                "subject": body.subject,
                "html": body.html,
                "scheduled_at": body.scheduled_at,
            },
            creds,
        )
        logger.info("Email sent for org %s (id=%s)", ctx.org_id, receipt.receipt_id)
        return {"status": "sent", "id": receipt.receipt_id}

    @router.post("/send-batch")
    async def send_email_batch(
        body: SendEmailBatchRequest,
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        recipients = _recipients(body.recipients)
        if not (body.subject and body.html and recipients):
            raise ValidationError("`subject`, `html`, and non-empty `recipients[]` are required")
        creds = _credentials_for(credentials, ctx, adapter)

        async def send_one(to: str) -> ProviderReceipt:
            payload = {
                "to": to,
                "from": body.sender,
                "subject": body.subject,
                "html": body.html,
                "scheduled_at": body.scheduled_at,
            }
            return await adapter.send(payload, creds)

        report = await dispatcher.dispatch(recipients, send_one, channel="email")
        return report.to_dict(key_field="to", receipt_field="id")

    return router


def create_twilio_router(
    *,
    resolver: OrgConnectionResolver,
    credentials: CredentialResolver,
    adapter: ProviderAdapter,
    dispatcher: BatchDispatcher,
) -> APIRouter:
    """SMS routes backed by a Twilio adapter."""
    router = APIRouter(prefix="/api/v1/twilio", tags=["notifications"])

    @router.post("/send-sms")
    async def send_sms(
        body: SendSmsRequest,
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        if not (body.to and body.body):
            raise ValidationError("`to` and `body` are required")
        creds = _credentials_for(credentials, ctx, adapter)
        receipt = await adapter.send({"to": str(body.to), "body": str(body.body)}, creds)
        logger.info("SMS sent for org %s (sid=%s)", ctx.org_id, receipt.receipt_id)
        return {"status": "sent", "sid": receipt.receipt_id}

    @router.post("/send-batch")
    async def send_sms_batch(
        body: SendSmsBatchRequest,
        ctx: RequestContext = Depends(resolver.tenant_context),  # noqa: B008
    ) -> dict[str, Any]:
        recipients = _recipients(body.recipients)
        if not (recipients and body.body):
            raise ValidationError("`recipients[]` (non-empty) and `body` are required")
        creds = _credentials_for(credentials, ctx, adapter)
        text = str(body.body)

        async def send_one(to: str) -> ProviderReceipt:
            return await adapter.send({"to": to, "body": text}, creds)

        report = await dispatcher.dispatch(recipients, send_one, channel="sms")
        return report.to_dict(key_field="to", receipt_field="sid")

    return router
