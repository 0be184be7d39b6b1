"""Request-id propagation via contextvars.

The gateway sets the request id on entry (from X-Request-ID or a fresh
UUID). Log records pick it up through RequestIdFilter, so background job
workers started from a request inherit it as well.
"""

from __future__ import annotations

import logging
from collections.abc import Generator  # noqa: TC003 -- used at runtime by contextmanager
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

current_request_id: ContextVar[str] = ContextVar("current_request_id", default="")


def get_request_id() -> str:
    """Return the current request id (empty string outside a request)."""
    return current_request_id.get()


@contextmanager
def request_context(request_id: str | None = None) -> Generator[str, None, None]:
    """Bind a request id for the duration of the block and restore the previous one."""
    effective_id = request_id or uuid4().hex
    token = current_request_id.set(effective_id)
    try:
        yield effective_id
    finally:
        current_request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Attach ``request_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True
