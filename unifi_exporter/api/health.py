"""Liveness endpoint.

/healthz answers one question: "is this process up and serving HTTP?"
It does NOT ask the controller anything.

If liveness followed controller health, a controller outage would make
Kubernetes restart every exporter replica in a loop, and none of the
restarts would fix anything.  Controller reachability is already visible
where it belongs: /metrics returns 503 and Prometheus marks the target
down.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["health"])


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "ok\n"
