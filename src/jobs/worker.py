"""AiJobWorker - completes ask/ctx jobs.

The worker calls the LLM and then performs the single allowed status
transition on the job document: ``pending -> done`` or
``pending -> error``. The transition is conditional on the job still
being pending, so a job is resolved exactly once even if it is run
twice.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any
from uuid import UUID

from src.jobs.runner import JOB_KIND_ASK
from src.objects.payloads import ObjectType
from src.ports.llm_call_port import ChatMessage
from src.shared.errors import NotFoundError
from src.shared.logging.error_handler import log_structured_error
from src.shared.metrics import AI_JOBS_TOTAL, AI_RESPONSE_SECONDS
from src.shared.types import JobStatus

if TYPE_CHECKING:
    from src.jobs.runner import JobSpec
    from src.ports.credential_port import CredentialResolver
    from src.ports.llm_call_port import LLMCallPort
    from src.ports.object_store_port import ObjectStorePort

logger = logging.getLogger(__name__)

LLM_TEMPERATURE = 0.7
LLM_MAX_TOKENS = 4000

DEFAULT_CTX_SYSTEM_PROMPT = "\n".join(
    [
        "You are a careful assistant.",
        "If the task asks for JSON, return ONLY valid JSON with no extra text.",
        "Do not invent facts; unknown fields may be null/empty.",
    ]
)

_PENDING = {"status": JobStatus.PENDING.value}


def build_chat(
    system_prompt: str | None,
    history: list[dict[str, str]],
    message: str | None,
) -> list[ChatMessage]:
    """System prompt (if non-blank), then history, then the new user turn."""
    messages: list[ChatMessage] = []
    if system_prompt and system_prompt.strip():
        messages.append(ChatMessage(role="system", content=system_prompt))
    for turn in history:
        role = "assistant" if turn.get("role") == "assistant" else "user"
        messages.append(ChatMessage(role=role, content=str(turn.get("content") or "")))
    if message:
        messages.append(ChatMessage(role="user", content=message))
    return messages


class AiJobWorker:
    """Execute one JobSpec against the LLM and record the outcome."""

    def __init__(
        self,
        *,
        store: ObjectStorePort,
        llm: LLMCallPort,
        credentials: CredentialResolver,
        default_system_prompt: str = "",
    ) -> None:
        self._store = store
        self._llm = llm
        self._credentials = credentials
        self._default_system_prompt = default_system_prompt

    async def _session_prompt(self, org_id: str, session_id: str) -> str | None:
        try:
            session = await self._store.get(org_id, UUID(session_id))
        except (NotFoundError, ValueError):
            return None
        if session.type != ObjectType.AI_SESSION.value or session.is_deleted:
            return None
        prompt = session.data.get("system_prompt")
        return prompt if isinstance(prompt, str) else None

    async def resolve_system_prompt(self, spec: JobSpec) -> str:
        """Request prompt, else session prompt, else the per-kind default."""
        if spec.system_prompt is not None:
            return spec.system_prompt
        session_prompt = await self._session_prompt(spec.org_id, spec.session_id)
        if session_prompt:
            return session_prompt
        if spec.kind == JOB_KIND_ASK:
            return self._default_system_prompt
        return DEFAULT_CTX_SYSTEM_PROMPT

    async def _call_llm(self, spec: JobSpec) -> str:
        creds = self._credentials.require(spec.org_id, "OPENAI", "API_KEY")
        base_url = self._credentials.resolve(spec.org_id, "OPENAI", "BASE_URL")
        system_prompt = await self.resolve_system_prompt(spec)

        # the question (ask) or the task (ctx) is the final user turn
        messages = build_chat(system_prompt, spec.history, spec.message)

        started = time.perf_counter()
        try:
            response = await self._llm.chat(
                messages,
                model=spec.model,
                api_key=creds["API_KEY"],
                base_url=base_url,
                temperature=LLM_TEMPERATURE,
                max_tokens=LLM_MAX_TOKENS,
            )
        finally:
            AI_RESPONSE_SECONDS.labels(model=spec.model).observe(time.perf_counter() - started)
        return response.text

    def _done_changes(self, spec: JobSpec, text: str) -> dict[str, Any]:
        if spec.kind == JOB_KIND_ASK:
            return {"status": JobStatus.DONE.value, "content": text}
        return {"status": JobStatus.DONE.value, "result": text}

    def _error_changes(self, spec: JobSpec, error: str) -> dict[str, Any]:
        changes: dict[str, Any] = {"status": JobStatus.ERROR.value, "error": error}
        if spec.kind == JOB_KIND_ASK:
            changes["content"] = f"Error: {error}"
        return changes

    async def run(self, spec: JobSpec) -> JobStatus:
        """Complete the job. Never raises; failures become ``error`` status.

        Returns:
            The status this run wrote; PENDING when nothing was written
            (another run resolved the job first, or the store failed).
        """
        try:
            text = await self._call_llm(spec)
        except Exception as exc:  # noqa: BLE001 -- recorded on the job document
            log_structured_error(
                logger,
                exc,
                error_code="AI_JOB_FAILED",
                org_id=spec.org_id,
                context={"job_id": spec.job_id, "kind": spec.kind, "model": spec.model},
                level=logging.WARNING,
            )
            changes = self._error_changes(spec, str(exc) or type(exc).__name__)
        else:
            changes = self._done_changes(spec, text)

        return await self._resolve(spec, changes)

    async def _resolve(self, spec: JobSpec, changes: dict[str, Any]) -> JobStatus:
        try:
            updated = await self._store.transition(
                spec.org_id,
                UUID(spec.job_id),
                expected=_PENDING,
                changes=changes,
            )
        except Exception as exc:  # noqa: BLE001 -- job stays pending; nothing else to do
            log_structured_error(
                logger,
                exc,
                error_code="AI_JOB_TRANSITION_FAILED",
                org_id=spec.org_id,
                context={"job_id": spec.job_id, "kind": spec.kind},
            )
            return JobStatus.PENDING

        if updated is None:
            logger.info("Job %s already resolved; leaving it unchanged", spec.job_id)
            return JobStatus.PENDING

        status = JobStatus(changes["status"])
        AI_JOBS_TOTAL.labels(kind=spec.kind, status=status.value).inc()
        logger.info("Job %s (%s) resolved as %s", spec.job_id, spec.kind, status.value)
        return status
