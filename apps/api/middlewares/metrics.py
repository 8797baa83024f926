"""Metrics middleware for API."""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.metrics import api_request_duration


def endpoint_label(request: Request) -> str:
    """Route template ("/profile/{user_id:int}") rather than the raw path, to bound label cardinality."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect API request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics."""
        start_time = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            api_request_duration.labels(
                method=request.method, endpoint=endpoint_label(request), status=status
            ).observe(time.perf_counter() - start_time)
