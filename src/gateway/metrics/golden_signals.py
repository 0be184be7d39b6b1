"""Golden-signal metrics for the HTTP surface.

One middleware feeds four series, all labelled by the matched route
template (``/api/v1/dao/objects/{object_id}``) rather than the raw path:

    orgbase_http_request_duration_seconds  latency histogram
    orgbase_http_requests_total            traffic counter
    orgbase_http_errors_total              5xx counter
    orgbase_http_in_flight_requests        saturation gauge (per method)

Requests that match no route share the ``<unmatched>`` label.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram
from starlette.routing import Match

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import Request, Response

_LABELS = ("method", "route", "status_code")

REQUEST_DURATION = Histogram(
    "orgbase_http_request_duration_seconds",
    "Time spent serving a request, by route template",
    _LABELS,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

REQUEST_TOTAL = Counter(
    "orgbase_http_requests_total",
    "Requests served, by route template",
    _LABELS,
)

ERROR_TOTAL = Counter(
    "orgbase_http_errors_total",
    "Requests answered with a 5xx status",
    _LABELS,
)

ACTIVE_REQUESTS = Gauge(
    "orgbase_http_in_flight_requests",
    "Requests currently being served",
    ["method"],
)

UNMATCHED_ROUTE = "<unmatched>"
_SKIP = frozenset({"/metrics", "/healthz"})


def route_template(request: Request) -> str:
    """Path template of the first route that fully matches ``request``."""
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


def _record(method: str, route: str, status_code: int, elapsed: float) -> None:
    series = {"method": method, "route": route, "status_code": str(status_code)}
    REQUEST_DURATION.labels(**series).observe(elapsed)
    REQUEST_TOTAL.labels(**series).inc()
    if status_code >= 500:
        ERROR_TOTAL.labels(**series).inc()


async def golden_signals_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    if request.url.path in _SKIP:
        return await call_next(request)

    method = request.method
    route = route_template(request)
    in_flight = ACTIVE_REQUESTS.labels(method=method)
    in_flight.inc()
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        in_flight.dec()
        _record(method, route, status_code, time.perf_counter() - started)
