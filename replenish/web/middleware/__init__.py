"""FastAPI middleware."""

from __future__ import annotations

from replenish.web.middleware.prometheus import PrometheusMiddleware
from replenish.web.middleware.request_id import RequestIdMiddleware

__all__ = ["PrometheusMiddleware", "RequestIdMiddleware"]
