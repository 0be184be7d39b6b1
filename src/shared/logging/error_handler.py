"""Structured error records for server-side faults.

Anything that ends in a 500 (a missing provider credential, a store
outage, a provider rejecting a send) is logged once with its error code,
tenant, request id and stack trace attached under ``structured_error``.
Context values whose key looks like a credential never reach the log.
"""

from __future__ import annotations

import logging
import re
import traceback
from dataclasses import asdict, dataclass, field
from typing import Any

from src.shared.logging.request_context import get_request_id

REDACTED = "[REDACTED]"

_SENSITIVE_KEY = re.compile(
    r"password|token|secret|api_?key|authorization|credential|signature",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class StructuredError:
    error_code: str
    message: str
    stack_trace: str
    context: dict[str, Any] = field(default_factory=dict)
    org_id: str = ""
    request_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        record = asdict(self)
        record["context"] = redact_sensitive(self.context)
        return record


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return redact_sensitive(value)
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    return value


def redact_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with credential-like keys masked at any depth."""
    return {
        key: REDACTED if _SENSITIVE_KEY.search(str(key)) else _redact_value(value)
        for key, value in data.items()
    }


def create_structured_error(
    exc: BaseException,
    *,
    error_code: str = "",
    org_id: str = "",
    context: dict[str, Any] | None = None,
) -> StructuredError:
    # OrgBaseError carries its own code; anything else is named by its class.
    code = error_code or getattr(exc, "code", None) or type(exc).__name__
    return StructuredError(
        error_code=code,
        message=str(exc),
        stack_trace="".join(traceback.format_exception(exc)),
        context=dict(context or {}),
        org_id=org_id,
        request_id=get_request_id(),
    )


def log_structured_error(
    logger: logging.Logger,
    exc: BaseException,
    *,
    error_code: str = "",
    org_id: str = "",
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> StructuredError:
    """Log ``exc`` at ``level`` and return the record that was attached."""
    record = create_structured_error(exc, error_code=error_code, org_id=org_id, context=context)
    logger.log(
        level,
        "%s: %s",
        record.error_code,
        record.message,
        extra={"structured_error": record.to_dict()},
    )
    return record
