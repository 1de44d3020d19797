"""Prometheus metrics endpoints.

/metrics is what Prometheus scrapes.  Every request runs the whole
pipeline against the controller and returns plain text in the
exposition format, not JSON:

  # HELP unifi_device_up 1 if the device is online, 0 otherwise
  # TYPE unifi_device_up gauge
  unifi_device_up{site="default",device_id="6f1c...",device="Lobby AP"} 1.0

It is all or nothing.  If any step fails the response is a 503 with a
one-line body naming the kind of failure; Prometheus records the scrape
as failed (up == 0) and tries again next interval.  A 200 with half the
devices missing would look like those devices vanished.

/exporter/metrics exposes the exporter's own counters (request rates,
controller latency, scrape errors by kind) from the process-wide
prometheus_client registry.

SECURITY NOTE: both endpoints reveal network topology (device names,
client MACs).  Bind to an internal interface or restrict access to the
Prometheus server.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from unifi_exporter.api.dependencies import get_settings, get_unifi_client
from unifi_exporter.core.config import Settings
from unifi_exporter.core.errors import ExporterError
from unifi_exporter.core.metrics import SCRAPE_ERRORS
from unifi_exporter.services.collector import scrape
from unifi_exporter.services.renderer import CONTENT_TYPE
from unifi_exporter.services.unifi_client import UnifiClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics(
    client: Annotated[UnifiClient, Depends(get_unifi_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Scrape the controller and return its state in exposition format."""
    try:
        body = await scrape(client, deadline_seconds=settings.scrape_timeout_seconds)
    except ExporterError as exc:
        SCRAPE_ERRORS.labels(kind=exc.kind).inc()
        logger.error("Scrape failed (%s): %s", exc.kind, exc, extra={"error_kind": exc.kind})
        return PlainTextResponse(
            f"scrape failed: {exc.kind}\n",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return Response(content=body, media_type=CONTENT_TYPE)


@router.get("/exporter/metrics", include_in_schema=False)
async def exporter_metrics() -> Response:
    """Expose the exporter's own telemetry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
