"""
Request latency logging and HTTP metrics.
"""
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from teleconsult.observability.metrics import record_http_request

logger = logging.getLogger("teleconsult.http")


class PerformanceMiddleware(BaseHTTPMiddleware):
    """
    Times every request, logs one line per request and records the
    latency histogram keyed by route template.
    """

    def __init__(self, app, slow_request_ms: float = 1000.0) -> None:
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        latency_ms = round((time.perf_counter() - started) * 1000, 2)

        # Route template keeps request ids out of metric labels
        route = request.scope.get("route")
        path_template = getattr(route, "path", request.url.path)
        role = getattr(request.state, "user_role", None)

        logger.info(
            f"HTTP {request.method} {path_template} -> {response.status_code} in {latency_ms}ms "
            f"role={getattr(role, 'value', 'anonymous')} "
            f"request_id={getattr(request.state, 'request_id', 'unknown')}"
        )
        record_http_request(request.method, path_template, response.status_code, latency_ms)
        response.headers["X-Process-Time"] = str(latency_ms)

        if latency_ms > self.slow_request_ms:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {latency_ms}ms")

        return response
