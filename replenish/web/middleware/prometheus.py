"""Request metrics middleware."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from replenish.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

UNMATCHED_ROUTE = "<unmatched>"


def route_label(request: Request) -> str:
    """Route template the request matched, e.g. ``/api/v1/kpi/sku/{sku}``.

    Unrouted paths (404s, scanners) share one label so they cannot blow up
    series cardinality.
    """
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return template or UNMATCHED_ROUTE


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count requests and observe latency per (method, route)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        gauge = http_requests_in_progress.labels(method=method)
        gauge.inc()
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            gauge.dec()
            route = route_label(request)
            http_request_duration_seconds.labels(method=method, route=route).observe(
                time.perf_counter() - started
            )
            http_requests_total.labels(method=method, route=route, status=str(status)).inc()
