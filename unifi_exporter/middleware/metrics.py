"""Request metrics for the exporter's own HTTP surface.

Every request is counted by method, endpoint and status code, timed,
and tracked in the in-flight gauge while it runs.

Scrapes of /metrics ARE counted: how long a scrape takes and how often
it ends in a 503 is exactly what the exporter's own telemetry is for.
Only /exporter/metrics is skipped, so reading the telemetry does not
change it.

Unknown paths are folded into a single "other" endpoint label so a
port scanner cannot blow up the label cardinality.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from unifi_exporter.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

SELF_METRICS_PATH = "/exporter/metrics"
KNOWN_PATHS = frozenset({"/metrics", "/healthz"})


def endpoint_label(path: str) -> str:
    return path if path in KNOWN_PATHS else "other"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == SELF_METRICS_PATH:
            return await call_next(request)

        endpoint = endpoint_label(path)
        # Starlette answers 500 when the handler raises
        status_code = "500"
        started = time.monotonic()

        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
                status_code = str(response.status_code)
            finally:
                REQUEST_COUNT.labels(request.method, endpoint, status_code).inc()
                REQUEST_DURATION.labels(request.method, endpoint).observe(
                    time.monotonic() - started
                )

        return response
