"""
FastAPI middleware for automatic Prometheus metrics collection.

This middleware tracks:
- Total API requests with method, endpoint, and status labels
- Request duration histograms
- In-progress request gauges
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from storage_lifecycle.metrics import api_requests_in_progress, record_api_request

# Collection name -> placeholder for the id segment that follows it
ID_SEGMENTS = {
    "jobs": "{job_id}",
    "reports": "{report_id}",
    "alerts": "{alert_id}",
    "violations": "{violation_id}",
}


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically track API request metrics.

    The /metrics endpoint itself is not tracked.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        if path == "/metrics":
            return await call_next(request)

        normalized_path = self._normalize_path(path)
        api_requests_in_progress.labels(method=method, endpoint=normalized_path).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
            record_api_request(method, normalized_path, response.status_code, time.time() - start_time)
            return response

        except Exception:
            record_api_request(method, normalized_path, 500, time.time() - start_time)
            raise

        finally:
            api_requests_in_progress.labels(method=method, endpoint=normalized_path).dec()

    def _normalize_path(self, path: str) -> str:
        """
        Replace id segments with placeholders to bound label cardinality.

        Examples:
            /api/v1/jobs/3f2a...-9c1e -> /api/v1/jobs/{job_id}
            /api/v1/alerts/abc12345/resolve -> /api/v1/alerts/{alert_id}/resolve
        """
        parts = path.split("/")
        normalized_parts = []
        for i, part in enumerate(parts):
            previous = parts[i - 1] if i > 0 else ""
            if previous in ID_SEGMENTS and self._is_identifier(part):
                normalized_parts.append(ID_SEGMENTS[previous])
            else:
                normalized_parts.append(part)
        return "/".join(normalized_parts)

    @staticmethod
    def _is_identifier(value: str) -> bool:
        """Ids are 8-64 characters, alphanumeric with hyphens/underscores."""
        if len(value) < 8 or len(value) > 64:
            return False
        return value.replace("-", "").replace("_", "").isalnum()
