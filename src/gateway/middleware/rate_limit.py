"""Rate limiting middleware using a sliding window counter.

- Exceeding the per-minute threshold of a route group -> 429
- Keyed by authenticated user, else X-ORG-ID, else client IP
- Route groups without a rule are not limited
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse

from src.shared.errors import RateLimitedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import Request, Response

logger = logging.getLogger(__name__)

_WINDOW_S = 60.0


@dataclass(frozen=True)
class RateLimitRule:
    """Requests per minute allowed under one path prefix."""

    prefix: str
    requests_per_minute: int


DEFAULT_RULES: tuple[RateLimitRule, ...] = (
    RateLimitRule("/api/v1/public/dao", 1200),
    RateLimitRule("/api/v1/resend", 500),
    RateLimitRule("/api/v1/twilio", 500),
    RateLimitRule("/api/v1/payu", 120),
)


class InMemoryRateLimiter:
    """In-memory sliding window rate limiter (per process)."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, list[float]] = {}

    def check(self, key: str, limit: int) -> tuple[bool, int, int]:
        """Check and record one request.

        Args:
            key: Rate limit key (e.g. "/api/v1/payu|user:u1").
            limit: Requests allowed per minute.

        Returns:
            Tuple of (allowed, remaining, retry_after_seconds).
        """
        now = self._clock()
        window_start = now - _WINDOW_S

        hits = [t for t in self._windows.get(key, []) if t > window_start]
        self._windows[key] = hits

        if len(hits) >= limit:
            retry_after = max(1, int(hits[0] + _WINDOW_S - now))
            return False, 0, retry_after

        hits.append(now)
        return True, limit - len(hits), 0

    def reset(self, key: str) -> None:
        """Reset rate limit counters for a key."""
        self._windows.pop(key, None)


def client_key(request: Request) -> str:
    """user id, else X-ORG-ID, else client IP."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    org_id = request.headers.get("X-ORG-ID")
    if org_id:
        return f"org:{org_id}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


class RateLimitMiddleware:
    """Callable middleware for request rate limiting.

    Returns 429 when a rule's limit is exceeded and adds standard rate
    limit headers to limited routes.

    Usage with FastAPI:
        app.middleware("http")(RateLimitMiddleware())
    """

    def __init__(
        self,
        *,
        limiter: InMemoryRateLimiter | None = None,
        rules: tuple[RateLimitRule, ...] = DEFAULT_RULES,
    ) -> None:
        self._limiter = limiter or InMemoryRateLimiter()
        self._rules = rules

    def rule_for(self, path: str) -> RateLimitRule | None:
        for rule in self._rules:
            if path.startswith(rule.prefix):
                return rule
        return None

    async def __call__(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        rule = self.rule_for(request.url.path)
        if rule is None:
            return await call_next(request)

        key = f"{rule.prefix}|{client_key(request)}"
        allowed, remaining, retry_after = self._limiter.check(key, rule.requests_per_minute)

        if not allowed:
            logger.warning("Rate limit hit for %s", key)
            return JSONResponse(
                status_code=RateLimitedError.status_code,
                content={"error": str(RateLimitedError(retry_after))},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(rule.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rule.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
