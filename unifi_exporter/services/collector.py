"""One scrape, end to end.

  GET /metrics
      │
      ▼
  collect_snapshot()        info, sites ─┬─ devices ── statistics (per device, concurrent)
      │                                  └─ clients
      ▼
  translate()               records → samples
      │
      ▼
  render()                  samples → exposition text

Everything here is scrape-scoped: the records built for one request are
never shared with another, so concurrent scrapes need no locking.  The
only shared object is the UnifiClient's connection pool.

The whole collection runs under one deadline (SCRAPE_TIMEOUT_SECONDS)
on top of the per-request timeout, so a controller that answers each
call slowly but just in time still cannot hold a scrape open forever.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace

from unifi_exporter.core.errors import (
    AuthRejected,
    ExporterError,
    SchemaMismatch,
    UpstreamUnavailable,
)
from unifi_exporter.core.metrics import RECORDS_SKIPPED
from unifi_exporter.models.client import ClientRecord
from unifi_exporter.models.controller import ControllerInfo, SiteRecord
from unifi_exporter.models.device import EMPTY_STATISTICS, DeviceRecord
from unifi_exporter.services.decoder import (
    SkippedRecord,
    decode_clients,
    decode_device_statistics,
    decode_devices,
    decode_info,
    decode_sites,
)
from unifi_exporter.services.renderer import render
from unifi_exporter.services.translator import translate
from unifi_exporter.services.unifi_client import UnifiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Every decoded record from one scrape."""

    info: ControllerInfo | None
    sites: tuple[SiteRecord, ...]
    devices: tuple[DeviceRecord, ...]
    clients: tuple[ClientRecord, ...]
    skipped: tuple[SkippedRecord, ...] = ()


async def _with_statistics(
    client: UnifiClient, site: SiteRecord, device: DeviceRecord
) -> DeviceRecord | SkippedRecord:
    try:
        raw = await client.get_device_statistics(site.id, device.id)
    except UpstreamUnavailable as exc:
        if exc.status_code != 404:
            raise
        # Offline and unadopted devices have no "latest" statistics.
        logger.debug(
            "No statistics for device %s (%s), state=%s",
            device.id,
            device.name,
            device.state,
            extra={"site": site.reference, "device_id": device.id},
        )
        return replace(device, statistics=EMPTY_STATISTICS)

    try:
        statistics = decode_device_statistics(raw)
    except SchemaMismatch as exc:
        logger.warning(
            "Skipping device %s (%s) at site %s: %s",
            device.id,
            device.name,
            site.reference,
            exc,
            extra={
                "site": site.reference,
                "device_id": device.id,
                "record_type": "device_statistics",
            },
        )
        RECORDS_SKIPPED.labels(record_type="device_statistics").inc()
        return SkippedRecord(
            record_type="device_statistics", index=-1, record_id=device.id, reason=str(exc)
        )

    return replace(device, statistics=statistics)


async def _collect_site(
    client: UnifiClient, site: SiteRecord
) -> tuple[list[DeviceRecord], list[ClientRecord], list[SkippedRecord]]:
    devices_raw, clients_raw = await asyncio.gather(
        client.get_devices(site.id), client.get_clients(site.id)
    )
    devices = decode_devices(devices_raw, site.reference)
    clients = decode_clients(clients_raw, site.reference)
    skipped = [*devices.skipped, *clients.skipped]

    results = await asyncio.gather(
        *(_with_statistics(client, site, device) for device in devices.records)
    )
    kept: list[DeviceRecord] = []
    for result in results:
        if isinstance(result, SkippedRecord):
            skipped.append(result)
        else:
            kept.append(result)

    return kept, list(clients.records), skipped


async def collect_snapshot(client: UnifiClient) -> Snapshot:
    info_raw, sites_raw = await asyncio.gather(client.get_info(), client.get_sites())
    info = decode_info(info_raw)
    sites = decode_sites(sites_raw)

    per_site = await asyncio.gather(*(_collect_site(client, site) for site in sites.records))

    devices: list[DeviceRecord] = []
    clients: list[ClientRecord] = []
    skipped: list[SkippedRecord] = list(sites.skipped)
    for site_devices, site_clients, site_skipped in per_site:
        devices.extend(site_devices)
        clients.extend(site_clients)
        skipped.extend(site_skipped)

    return Snapshot(
        info=info,
        sites=sites.records,
        devices=tuple(devices),
        clients=tuple(clients),
        skipped=tuple(skipped),
    )


def render_snapshot(snapshot: Snapshot) -> str:
    samples = translate(snapshot.devices, snapshot.clients, snapshot.sites, snapshot.info)
    return render(samples)


async def scrape(client: UnifiClient, *, deadline_seconds: float) -> str:
    """Run the full pipeline once and return exposition text.

    Raises:
        ExporterError: any subclass; the caller maps it to a 503
    """
    start = time.monotonic()
    try:
        snapshot = await asyncio.wait_for(collect_snapshot(client), timeout=deadline_seconds)
    except asyncio.TimeoutError:
        raise UpstreamUnavailable(
            f"scrape exceeded its {deadline_seconds:g}s deadline"
        ) from None

    body = render_snapshot(snapshot)
    logger.info(
        "Scrape complete: %d site(s), %d device(s), %d client(s), %d skipped in %.1fms",
        len(snapshot.sites),
        len(snapshot.devices),
        len(snapshot.clients),
        len(snapshot.skipped),
        (time.monotonic() - start) * 1000,
    )
    return body


async def verify_controller(client: UnifiClient) -> ControllerInfo | None:
    """Startup check: can we reach the controller with this token?

    Only logs.  Liveness must not depend on the controller, so a failure
    here never stops the exporter from starting.
    """
    try:
        info = decode_info(await client.get_info())
    except AuthRejected as exc:
        logger.error(
            "Controller rejected the API token (HTTP %d); every scrape will fail until it is fixed",
            exc.status_code,
            extra={"error_kind": exc.kind},
        )
        return None
    except ExporterError as exc:
        logger.warning(
            "Controller check failed (%s): %s", exc.kind, exc, extra={"error_kind": exc.kind}
        )
        return None

    logger.info(
        "Connected to UniFi controller %s (version %s)",
        client.endpoint.base_url,
        info.application_version,
    )
    return info
