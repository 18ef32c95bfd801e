"""Per-request counters and latency histogram, labelled by normalized route."""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

from talentmatch.core.metrics import http_request_duration_seconds, http_requests_total, normalize_path


logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        _observe(request.method, request.url.path, response.status_code, time.perf_counter() - started)
        return response


def _observe(method: str, path: str, status: int, elapsed: float) -> None:
    route = normalize_path(path)
    try:
        http_requests_total.inc({"method": method.upper(), "path": route, "status": str(status)})
        http_request_duration_seconds.observe(elapsed, {"method": method.upper(), "path": route})
    except ValueError as e:
        # A mislabelled metric must not fail the request
        logger.warning("[metrics] dropped observation", extra={"error": str(e), "path": route})
