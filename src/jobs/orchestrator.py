"""AsyncJobOrchestrator - AI sessions, messages and ask/ctx jobs.

Everything is stored in the polymorphic object store:

  AiSession  -> SessionData
  AiMessage  -> MessageData (ask replies carry a job status)
  AiCtxJob   -> CtxJobData

``ask`` and ``context`` write a pending job document, hand a JobSpec to
the job runner and return immediately. They never wait for the LLM.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from src.jobs.runner import JOB_KIND_ASK, JOB_KIND_CTX, JobSpec
from src.objects.payloads import CtxJobData, MessageData, ObjectType, SessionData
from src.shared.errors import NotFoundError, PayloadTooLargeError, ValidationError
from src.shared.types import JobStatus

if TYPE_CHECKING:
    from src.jobs.runner import JobRunner
    from src.objects.partition import Partition
    from src.ports.credential_port import CredentialResolver
    from src.shared.types import ObjectPage, ObjectRecord

logger = logging.getLogger(__name__)

MESSAGE_ROLES = frozenset({"user", "assistant"})
MAX_MESSAGES_PAGE = 500
_SOURCE = "ai-router"
_EPOCH_ISO = datetime.fromtimestamp(0, UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class JobView:
    """Poll result for an ask or ctx job."""

    status: str
    result: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status}
        if self.status == JobStatus.DONE.value:
            body["result"] = self.result
        elif self.status == JobStatus.ERROR.value:
            body["error"] = self.error
        return body


def parse_object_id(raw: str, *, field: str) -> UUID:
    """Path-parameter id to UUID; malformed ids are a 400 (``bad_<field>``)."""
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise ValidationError(f"bad_{field}", field=field) from exc


def normalize_history(history: list[Any]) -> list[dict[str, str]]:
    """Coerce chat history into ``{role, content, created_at}`` turns."""
    normalized: list[dict[str, str]] = []
    for turn in history:
        if not isinstance(turn, dict):
            raise ValidationError(
                "history items must be objects with role and content", field="history"
            )
        content = turn.get("content")
        normalized.append(
            {
                "role": "assistant" if turn.get("role") == "assistant" else "user",
                "content": "" if content is None else str(content),
                "created_at": str(turn.get("created_at") or _EPOCH_ISO),
            }
        )
    return normalized


def history_hash(history: list[dict[str, str]]) -> str:
    """``sha256:<hex>`` over the compact JSON of the normalized history."""
    encoded = json.dumps(history, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return "sha256:" + hashlib.sha256(encoded).hexdigest()


def message_view(record: ObjectRecord) -> dict[str, Any]:
    """Wire shape of one AiMessage."""
    msg = MessageData.from_record(record)
    return {
        "id": str(record.id),
        "session_id": msg.session_id,
        "role": msg.role or None,
        "content": msg.content,
        "in_response_to": msg.in_response_to,
        "status": msg.status,
        "assistant_id": msg.assistant_id,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


def session_view(record: ObjectRecord) -> dict[str, Any]:
    """Wire shape of one AiSession."""
    session = SessionData.from_record(record)
    return {
        "session_id": str(record.id),
        "name": session.name,
        "system_prompt": session.system_prompt,
        "user_id": session.user_id or None,
        "session_start": session.session_start
        or (record.created_at.isoformat() if record.created_at else None),
        "session_end": session.session_end,
    }


class AsyncJobOrchestrator:
    """AI conversation bookkeeping on top of a tenant Partition.

    Args:
        runner: Where ask/ctx jobs are executed.
        credentials: Used to pick a per-organization default model
            (``{org}_OPENAI_MODEL``).
        default_model: Model when neither the request nor the
            organization names one.
        max_payload_bytes: Ceiling for the serialized ask/ctx request.
    """

    def __init__(
        self,
        *,
        runner: JobRunner,
        credentials: CredentialResolver,
        default_model: str = "gpt-4o",
        max_payload_bytes: int = 1024 * 1024,
    ) -> None:
        self._runner = runner
        self._credentials = credentials
        self._default_model = default_model
        self._max_payload_bytes = max_payload_bytes

    # -- Sessions --

    async def create_session(
        self,
        partition: Partition,
        *,
        user_id: str,
        name: str | None = None,
        system_prompt: str | None = None,
    ) -> ObjectRecord:
        data = SessionData(
            user_id=user_id,
            name=name if isinstance(name, str) else None,
            system_prompt=system_prompt if isinstance(system_prompt, str) else None,
            session_start=datetime.now(UTC).isoformat(),
        )
        record = await partition.create(
            ObjectType.AI_SESSION.value,
            data.to_data(),
            metadata=self._metadata(partition, user_id),
        )
        logger.info("Created AI session %s in org %s", record.id, partition.org_id)
        return record

    async def get_session(self, partition: Partition, session_id: str) -> ObjectRecord:
        """Live session by id.

        Raises:
            ValidationError: Malformed id.
            NotFoundError: Absent, soft-deleted or not a session.
        """
        object_id = parse_object_id(session_id, field="session_id")
        try:
            record = await partition.get(object_id)
        except NotFoundError:
            raise NotFoundError("Session", session_id) from None
        if record.type != ObjectType.AI_SESSION.value or record.is_deleted:
            raise NotFoundError("Session", session_id)
        return record

    async def list_sessions(
        self,
        partition: Partition,
        *,
        user_id: str,
        limit: int = 50,
        cursor: str | None = None,
    ) -> ObjectPage:
        """The user's live sessions, newest first."""
        return await partition.list(
            ObjectType.AI_SESSION.value,
            filters={"data.user_id": user_id},
            limit=min(max(limit, 1), MAX_MESSAGES_PAGE),
            cursor=cursor,
            descending=True,
            exclude_deleted=True,
        )

    async def update_session(
        self,
        partition: Partition,
        session_id: str,
        *,
        name: str | None = None,
        system_prompt: str | None = None,
        end: bool = False,
    ) -> ObjectRecord:
        changes: dict[str, Any] = {}
        if isinstance(name, str):
            changes["name"] = name
        if isinstance(system_prompt, str):
            changes["system_prompt"] = system_prompt
        if end is True:
            changes["session_end"] = datetime.now(UTC).isoformat()
        if not changes:
            raise ValidationError("nothing_to_update")

        record = await self.get_session(partition, session_id)
        return await partition.update(record.id, data=changes)

    # -- Messages --

    async def append_message(
        self,
        partition: Partition,
        session_id: str,
        *,
        user_id: str,
        role: Any,
        content: Any,
        in_response_to: str | None = None,
        assistant_id: str | None = None,
        status: str | None = None,
    ) -> ObjectRecord:
        if role not in MESSAGE_ROLES:
            raise ValidationError("bad_role", field="role")
        if not isinstance(content, str):
            raise ValidationError("content_required", field="content")
        if in_response_to:
            parse_object_id(in_response_to, field="in_response_to")

        session = await self.get_session(partition, session_id)
        data = MessageData(
            session_id=str(session.id),
            role=role,
            content=content,
            in_response_to=str(in_response_to) if in_response_to else None,
            assistant_id=str(assistant_id) if assistant_id else None,
            status=str(status) if status else None,
        )
        return await partition.create(
            ObjectType.AI_MESSAGE.value,
            data.to_data(),
            metadata=self._metadata(partition, user_id),
            links=[str(session.id)],
        )

    async def list_messages(
        self,
        partition: Partition,
        session_id: str,
        *,
        limit: int = 50,
        cursor: str | None = None,
        order: str = "desc",
    ) -> ObjectPage:
        """Live messages of a session in creation order (``asc``) or reverse."""
        sid = str(parse_object_id(session_id, field="session_id"))
        return await partition.list(
            ObjectType.AI_MESSAGE.value,
            filters={"data.session_id": sid},
            limit=min(max(limit, 1), MAX_MESSAGES_PAGE),
            cursor=cursor,
            descending=order != "asc",
            exclude_deleted=True,
        )

    async def get_message(
        self,
        partition: Partition,
        session_id: str,
        message_id: str,
    ) -> ObjectRecord:
        return await self._get_child(
            partition, session_id, message_id, ObjectType.AI_MESSAGE, "message_id"
        )

    async def delete_message(
        self,
        partition: Partition,
        session_id: str,
        message_id: str,
    ) -> ObjectRecord:
        record = await self.get_message(partition, session_id, message_id)
        return await partition.soft_delete(record.id)

    # -- Jobs --

    async def ask(
        self,
        partition: Partition,
        session_id: str,
        *,
        user_id: str,
        history: Any,
        message: Any,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> ObjectRecord:
        """Store the question, create the pending reply and submit the job.

        Returns:
            The pending assistant AiMessage; its id is the job handle.

        Raises:
            ValidationError: history not a list or message not a string.
            PayloadTooLargeError: Serialized request above the ceiling.
            NotFoundError: Unknown session.
        """
        if not isinstance(history, list) or not isinstance(message, str):
            raise ValidationError("history(array) and message(string) are required")
        self._check_size(
            {"history": history, "message": message, "system_prompt": system_prompt}
        )
        turns = normalize_history(history)
        session = await self.get_session(partition, session_id)
        metadata = self._metadata(partition, user_id)

        question = await partition.create(
            ObjectType.AI_MESSAGE.value,
            MessageData(session_id=str(session.id), role="user", content=message).to_data(),
            metadata=metadata,
            links=[str(session.id)],
        )
        reply = await partition.create(
            ObjectType.AI_MESSAGE.value,
            MessageData(
                session_id=str(session.id),
                role="assistant",
                in_response_to=str(question.id),
                status=JobStatus.PENDING.value,
                job_kind=JOB_KIND_ASK,
            ).to_data(),
            metadata=metadata,
            links=[str(session.id), str(question.id)],
        )

        self._runner.submit(
            JobSpec(
                kind=JOB_KIND_ASK,
                org_id=partition.org_id,
                session_id=str(session.id),
                job_id=str(reply.id),
                model=self.resolve_model(partition.org_id, model),
                history=[{"role": t["role"], "content": t["content"]} for t in turns],
                message=message,
                system_prompt=system_prompt if isinstance(system_prompt, str) else None,
            )
        )
        logger.info("Submitted ask job %s for session %s", reply.id, session.id)
        return reply

    async def context(
        self,
        partition: Partition,
        session_id: str,
        *,
        user_id: str,
        task: Any,
        history: Any,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> ObjectRecord:
        """Create a pending AiCtxJob and submit it. Returns the job document."""
        if not isinstance(task, str) or not isinstance(history, list):
            raise ValidationError("task(string) and history(array) are required")
        self._check_size({"history": history, "task": task, "system_prompt": system_prompt})
        turns = normalize_history(history)
        session = await self.get_session(partition, session_id)
        resolved_model = self.resolve_model(partition.org_id, model)

        job = await partition.create(
            ObjectType.AI_CTX_JOB.value,
            CtxJobData(
                session_id=str(session.id),
                task=task,
                history_hash=history_hash(turns),
                model=resolved_model,
            ).to_data(),
            metadata=self._metadata(partition, user_id),
            links=[str(session.id)],
        )

        self._runner.submit(
            JobSpec(
                kind=JOB_KIND_CTX,
                org_id=partition.org_id,
                session_id=str(session.id),
                job_id=str(job.id),
                model=resolved_model,
                history=[{"role": t["role"], "content": t["content"]} for t in turns],
                message=task,
                system_prompt=system_prompt if isinstance(system_prompt, str) else None,
            )
        )
        logger.info("Submitted ctx job %s for session %s", job.id, session.id)
        return job

    async def get_job_status(
        self,
        partition: Partition,
        session_id: str,
        job_id: str,
    ) -> JobView:
        """Current status of an ask reply or ctx job.

        Raises:
            NotFoundError: Unknown id, other session, or not a job (only
                replies created by ``ask`` are jobs, whatever their status).
        """
        object_id = parse_object_id(job_id, field="job_id")
        sid = str(parse_object_id(session_id, field="session_id"))
        try:
            record = await partition.get(object_id)
        except NotFoundError:
            raise NotFoundError("Job", job_id) from None
        if record.is_deleted or record.data.get("session_id") != sid:
            raise NotFoundError("Job", job_id)

        if record.type == ObjectType.AI_CTX_JOB.value:
            job = CtxJobData.from_record(record)
            return JobView(status=job.status, result=job.result, error=job.error)
        if record.type == ObjectType.AI_MESSAGE.value:
            msg = MessageData.from_record(record)
            if msg.job_kind == JOB_KIND_ASK and msg.status in {s.value for s in JobStatus}:
                return JobView(status=msg.status, result=msg.content, error=msg.error)
        raise NotFoundError("Job", job_id)

    async def get_ctx_status(
        self,
        partition: Partition,
        session_id: str,
        ctx_id: str,
    ) -> JobView:
        record = await self._get_child(
            partition, session_id, ctx_id, ObjectType.AI_CTX_JOB, "ctx_id"
        )
        job = CtxJobData.from_record(record)
        return JobView(status=job.status, result=job.result, error=job.error)

    # -- Helpers --

    def resolve_model(self, org_id: str, requested: str | None) -> str:
        """Request model, else ``{org}_OPENAI_MODEL``, else the default."""
        if requested:
            return requested
        return self._credentials.resolve(org_id, "OPENAI", "MODEL") or self._default_model

    def _check_size(self, body: dict[str, Any]) -> None:
        size = len(json.dumps(body, ensure_ascii=False, default=str).encode("utf-8"))
        if size > self._max_payload_bytes:
            raise PayloadTooLargeError(size, self._max_payload_bytes)

    @staticmethod
    def _metadata(partition: Partition, user_id: str) -> dict[str, Any]:
        return {"org_id": partition.org_id, "user_id": user_id, "source": _SOURCE}

    async def _get_child(
        self,
        partition: Partition,
        session_id: str,
        child_id: str,
        object_type: ObjectType,
        field: str,
    ) -> ObjectRecord:
        sid = str(parse_object_id(session_id, field="session_id"))
        object_id = parse_object_id(child_id, field=field)
        try:
            record = await partition.get(object_id)
        except NotFoundError:
            raise NotFoundError(object_type.value, child_id) from None
        if (
            record.type != object_type.value
            or record.is_deleted
            or record.data.get("session_id") != sid
        ):
            raise NotFoundError(object_type.value, child_id)
        return record
