"""
Request monitoring middleware.

Assigns a request id, times every request, logs slow ones and feeds the
Prometheus request counters.
"""

from typing import Callable
import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from contract_sla.core.config import settings
from contract_sla.core.logging import request_id_ctx

logger = logging.getLogger(__name__)


def _route_template(request: Request) -> str:
    """Route path template, so ids do not explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Performance monitoring middleware.

    Features:
    - Request ID tracking (X-Request-ID in and out)
    - Request timing (X-Response-Time)
    - Slow request logging
    - Prometheus request metrics
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        try:
            return await self._dispatch(request, call_next, request_id)
        finally:
            request_id_ctx.reset(token)

    async def _dispatch(self, request: Request, call_next: Callable, request_id: str) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed with exception",
                extra={
                    "method": method,
                    "path": path,
                    "client_ip": client_ip,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                    "event_type": "request_error"
                }
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        log_context = {
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": client_ip,
            "event_type": "request_complete"
        }

        if duration_ms > settings.SLOW_REQUEST_THRESHOLD_MS:
            log_context["event_type"] = "slow_request"
            logger.warning(f"Slow request: {method} {path} took {duration_ms:.2f}ms", extra=log_context)
        else:
            logger.info(f"{method} {path} {response.status_code}", extra=log_context)

        components = getattr(request.app.state, "components", None)
        if components is not None:
            components.metrics.record_request(
                method, _route_template(request), response.status_code, duration_ms / 1000
            )

        return response
