"""
Performance monitoring utilities.
"""

import time
from typing import Callable

import structlog
from fastapi import Request

from koban.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

logger = structlog.get_logger(__name__)

SLOW_REQUEST_MS = 1000


def _endpoint_label(request: Request) -> str:
    """Use the route template so key ids don't explode label cardinality."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


async def track_http_metrics(request: Request, call_next: Callable):
    """
    Middleware to track HTTP metrics.

    Records:
    - Request count by endpoint and status
    - Request duration histogram
    - Requests in progress gauge
    """
    method = request.method
    in_progress = http_requests_in_progress.labels(method=method, endpoint=request.url.path)
    in_progress.inc()

    start_time = time.time()

    try:
        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)

        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        if duration * 1000 > SLOW_REQUEST_MS:
            logger.warning(
                "slow_request_detected",
                method=method,
                endpoint=endpoint,
                duration_ms=round(duration * 1000, 2),
            )

        return response

    finally:
        in_progress.dec()
