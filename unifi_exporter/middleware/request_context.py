"""Request context middleware: assigns a unique ID to every request.

Two scrapers hitting /metrics at once (or a curl during a real scrape)
produce interleaved log lines from two independent pipelines:

  INFO  [req-abc] Scrape complete: 1 site(s), 12 device(s) ...
  WARN  [req-xyz] Skipping device #4 (id=...) at site default: model: Field required
  INFO  [req-xyz] Scrape complete: 1 site(s), 11 device(s) ...

The request ID tells them apart.  It lives in a ContextVar so every
coroutine in the request's call chain sees it without it being passed
around, and concurrent requests on the same event loop never share it.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Logging filter that injects the current request ID into every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_request_id_filter() -> None:
    """Attach the filter to the root logger's handlers.

    Filters on a logger only see records logged to that exact logger, so
    the filter goes on the handlers, which see everything that propagates.
    """
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
            handler.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, and log one summary line.

    1. Reads X-Request-ID (if the caller sent one) or generates a UUID
    2. Stores it in a ContextVar for the rest of the request
    3. Logs method, path, status and duration on completion
    4. Echoes X-Request-ID on the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = req_id
        return response
