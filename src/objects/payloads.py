"""Document validation and typed views over polymorphic payloads.

Storage only sees ``{type, data}``; consumers in the AI subsystem work
with the dataclasses below and convert at the store boundary.
"""

from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from src.shared.errors import ValidationError
from src.shared.types import JobStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.shared.types import ObjectRecord


class ObjectType(str, enum.Enum):
    """Known type discriminators. Business records may use any other string."""

    BUSINESS_RECORD = "BusinessRecord"
    AI_SESSION = "AiSession"
    AI_MESSAGE = "AiMessage"
    AI_CTX_JOB = "AiCtxJob"


_SCALARS = (str, bool, int, float)


def ensure_json_value(value: Any, *, field: str) -> None:
    """Reject values that cannot be stored as JSON.

    Walks the structure iteratively so deep nesting does not hit the
    recursion limit. Shared sub-objects are fine; a container that
    contains itself (directly or through descendants) is a cycle.

    Raises:
        ValidationError: Cycle, non-string key, non-finite float or a
            non-JSON type anywhere in the structure.
    """
    on_path: set[int] = set()
    stack: list[tuple[Any, bool]] = [(value, False)]
    while stack:
        node, leaving = stack.pop()
        if leaving:
            on_path.discard(id(node))
            continue
        if isinstance(node, dict):
            if id(node) in on_path:
                raise ValidationError(f'Field "{field}" contains a reference cycle', field=field)
            on_path.add(id(node))
            stack.append((node, True))
            for key, child in node.items():
                if not isinstance(key, str):
                    raise ValidationError(f'Field "{field}" has a non-string key', field=field)
                stack.append((child, False))
        elif isinstance(node, list):
            if id(node) in on_path:
                raise ValidationError(f'Field "{field}" contains a reference cycle', field=field)
            on_path.add(id(node))
            stack.append((node, True))
            stack.extend((child, False) for child in node)
        elif node is None:
            continue
        elif isinstance(node, _SCALARS):
            if isinstance(node, float) and not math.isfinite(node):
                raise ValidationError(f'Field "{field}" contains a non-finite number', field=field)
        else:
            raise ValidationError(
                f'Field "{field}" contains a non-JSON value of type {type(node).__name__}',
                field=field,
            )


def validate_document(
    type_: Any,
    data: Any,
    metadata: Any = None,
    links: Any = None,
) -> None:
    """Validate a full document before anything is written."""
    if not type_ or not isinstance(type_, str):
        raise ValidationError('Field "type" must be a non-empty string', field="type")
    if not isinstance(data, dict):
        raise ValidationError('Field "data" must be an object', field="data")
    ensure_json_value(data, field="data")
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ValidationError('Field "metadata" must be an object', field="metadata")
        ensure_json_value(metadata, field="metadata")
    if links is not None:
        validate_links(links)


def validate_links(links: Any) -> None:
    if not isinstance(links, list) or not all(isinstance(link, str) for link in links):
        raise ValidationError('Field "links" must be a list of ids', field="links")


def apply_increments(data: dict[str, Any], increments: Mapping[str, int | float]) -> None:
    """Add numeric deltas to top-level ``data`` fields in place (missing counts as 0)."""
    for field, delta in increments.items():
        if isinstance(delta, bool) or not isinstance(delta, int | float):
            raise ValidationError(f"Increment for {field!r} must be a number", field=field)
        current = data.get(field, 0)
        if isinstance(current, bool) or not isinstance(current, int | float):
            raise ValidationError(f"Field {field!r} is not numeric", field=field)
        data[field] = current + delta


# -- Typed views --


@dataclass(frozen=True)
class SessionData:
    """``AiSession`` payload."""

    user_id: str
    name: str | None = None
    system_prompt: str | None = None
    session_start: str | None = None
    session_end: str | None = None
    version: int = 1

    def to_data(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: ObjectRecord) -> SessionData:
        d = record.data
        return cls(
            user_id=str(d.get("user_id") or ""),
            name=d.get("name"),
            system_prompt=d.get("system_prompt"),
            session_start=d.get("session_start"),
            session_end=d.get("session_end"),
            version=int(d.get("version", 1)),
        )


@dataclass(frozen=True)
class MessageData:
    """``AiMessage`` payload.

    Plain messages have ``status`` None. Assistant replies produced by an
    ask job carry a JobStatus value and, once done, their content. Only
    those replies carry ``job_kind``; a caller-supplied ``status`` alone
    does not make a message pollable.
    """

    session_id: str
    role: str
    content: str | None = None
    in_response_to: str | None = None
    assistant_id: str | None = None
    status: str | None = None
    error: str | None = None
    job_kind: str | None = None
    version: int = 1

    def to_data(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: ObjectRecord) -> MessageData:
        d = record.data
        return cls(
            session_id=str(d.get("session_id") or ""),
            role=str(d.get("role") or ""),
            content=d.get("content"),
            in_response_to=d.get("in_response_to"),
            assistant_id=d.get("assistant_id"),
            status=d.get("status"),
            error=d.get("error"),
            job_kind=d.get("job_kind"),
            version=int(d.get("version", 1)),
        )


@dataclass(frozen=True)
class CtxJobData:
    """``AiCtxJob`` payload."""

    session_id: str
    task: str
    history_hash: str
    model: str
    status: str = JobStatus.PENDING.value
    result: str | None = None
    error: str | None = None
    version: int = 1

    def to_data(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: ObjectRecord) -> CtxJobData:
        d = record.data
        return cls(
            session_id=str(d.get("session_id") or ""),
            task=str(d.get("task") or ""),
            history_hash=str(d.get("history_hash") or ""),
            model=str(d.get("model") or ""),
            status=str(d.get("status") or JobStatus.PENDING.value),
            result=d.get("result"),
            error=d.get("error"),
            version=int(d.get("version", 1)),
        )
