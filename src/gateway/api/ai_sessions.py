"""AI session REST API.

- POST   /api/v1/ai/sessions                          -> create session
- GET    /api/v1/ai/sessions                          -> caller's sessions, newest first
- GET    /api/v1/ai/sessions/{id}                     -> one session
- PATCH  /api/v1/ai/sessions/{id}                     -> rename / change prompt / end
- POST   /api/v1/ai/sessions/{id}/messages            -> append message
- GET    /api/v1/ai/sessions/{id}/messages            -> page of messages
- GET    /api/v1/ai/sessions/{id}/messages/{mid}      -> one message
- DELETE /api/v1/ai/sessions/{id}/messages/{mid}      -> soft delete message
- POST   /api/v1/ai/sessions/{id}/ask                 -> 202, pending assistant reply
- POST   /api/v1/ai/sessions/{id}/ctx                 -> 202, pending context job
- GET    /api/v1/ai/sessions/{id}/ctx/{cid}           -> context job status
- GET    /api/v1/ai/sessions/{id}/jobs/{jid}          -> ask/ctx job status

ask and ctx return as soon as the job is submitted; clients poll the
status routes until the job leaves ``pending``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.jobs.orchestrator import message_view, session_view

if TYPE_CHECKING:
    from src.gateway.middleware.org_context import OrgConnectionResolver
    from src.jobs.orchestrator import AsyncJobOrchestrator

logger = logging.getLogger(__name__)


class CreateSessionRequest(BaseModel):
    name: str | None = None
    system_prompt: str | None = None


class UpdateSessionRequest(BaseModel):
    name: str | None = None
    system_prompt: str | None = None
    end: bool = False


class AppendMessageRequest(BaseModel):
    """Message body. role/content are checked by the orchestrator."""

    role: Any = None
    content: Any = None
    in_response_to: str | None = None
    assistant_id: str | None = None
    status: str | None = None


class AskRequest(BaseModel):
    history: Any = None
    message: Any = None
    model: str | None = None
    system_prompt: str | None = None


class ContextRequest(BaseModel):
    task: Any = None
    history: Any = None
    model: str | None = None
    system_prompt: str | None = None


def create_ai_sessions_router(
    *,
    resolver: OrgConnectionResolver,
    orchestrator: AsyncJobOrchestrator,
) -> APIRouter:
    """Create AI session router with injected orchestrator."""
    router = APIRouter(prefix="/api/v1/ai/sessions", tags=["ai"])
    tenant = resolver.tenant_context

    @router.post("", status_code=201)
    async def create_session(
        body: CreateSessionRequest,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, str]:
        record = await orchestrator.create_session(
            ctx.partition,
            user_id=str(ctx.user_id),
            name=body.name,
            system_prompt=body.system_prompt,
        )
        return {"session_id": str(record.id)}

    @router.get("")
    async def list_sessions(
        limit: int = 50,
        cursor: str | None = None,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        page = await orchestrator.list_sessions(
            ctx.partition, user_id=str(ctx.user_id), limit=limit, cursor=cursor
        )
        return {
            "items": [session_view(r) for r in page.items],
            "next_cursor": page.next_cursor,
        }

    @router.get("/{session_id}")
    async def get_session(
        session_id: str,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        return session_view(await orchestrator.get_session(ctx.partition, session_id))

    @router.patch("/{session_id}")
    async def update_session(
        session_id: str,
        body: UpdateSessionRequest,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        record = await orchestrator.update_session(
            ctx.partition,
            session_id,
            name=body.name,
            system_prompt=body.system_prompt,
            end=body.end,
        )
        return session_view(record)

    # -- Messages --

    @router.post("/{session_id}/messages", status_code=201)
    async def append_message(
        session_id: str,
        body: AppendMessageRequest,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, str]:
        record = await orchestrator.append_message(
            ctx.partition,
            session_id,
            user_id=str(ctx.user_id),
            role=body.role,
            content=body.content,
            in_response_to=body.in_response_to,
            assistant_id=body.assistant_id,
            status=body.status,
        )
        return {"message_id": str(record.id)}

    @router.get("/{session_id}/messages")
    async def list_messages(
        session_id: str,
        limit: int = 50,
        cursor: str | None = None,
        order: str = "desc",
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        direction = "asc" if order == "asc" else "desc"
        page = await orchestrator.list_messages(
            ctx.partition, session_id, limit=limit, cursor=cursor, order=direction
        )
        return {
            "items": [message_view(r) for r in page.items],
            "next_cursor": page.next_cursor,
            "order": direction,
        }

    @router.get("/{session_id}/messages/{message_id}")
    async def get_message(
        session_id: str,
        message_id: str,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        record = await orchestrator.get_message(ctx.partition, session_id, message_id)
        return message_view(record)

    @router.delete("/{session_id}/messages/{message_id}")
    async def delete_message(
        session_id: str,
        message_id: str,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        record = await orchestrator.delete_message(ctx.partition, session_id, message_id)
        return {"status": "message_deleted", "message_id": str(record.id)}

    # -- Jobs --

    @router.post("/{session_id}/ask", status_code=202)
    async def ask(
        session_id: str,
        body: AskRequest,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, str]:
        reply = await orchestrator.ask(
            ctx.partition,
            session_id,
            user_id=str(ctx.user_id),
            history=body.history,
            message=body.message,
            model=body.model,
            system_prompt=body.system_prompt,
        )
        return {"message_id": str(reply.id)}

    @router.post("/{session_id}/ctx", status_code=202)
    async def context(
        session_id: str,
        body: ContextRequest,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, str]:
        job = await orchestrator.context(
            ctx.partition,
            session_id,
            user_id=str(ctx.user_id),
            task=body.task,
            history=body.history,
            model=body.model,
            system_prompt=body.system_prompt,
        )
        return {"ctx_id": str(job.id)}

    @router.get("/{session_id}/ctx/{ctx_id}")
    async def ctx_status(
        session_id: str,
        ctx_id: str,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        view = await orchestrator.get_ctx_status(ctx.partition, session_id, ctx_id)
        return view.to_dict()

    @router.get("/{session_id}/jobs/{job_id}")
    async def job_status(
        session_id: str,
        job_id: str,
        ctx: RequestContext = Depends(tenant),  # noqa: B008
    ) -> dict[str, Any]:
        view = await orchestrator.get_job_status(ctx.partition, session_id, job_id)
        return view.to_dict()

    return router
