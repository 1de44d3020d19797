"""Decode controller JSON into typed records.

The controller's API is not a contract we control.  Fields appear in
new firmware, disappear in old firmware, and occasionally come back as
null.  This module is the single place where that uncertainty is dealt
with; everything downstream (translator, renderer) only ever sees the
frozen dataclasses in unifi_exporter.models.

HOW DECODING WORKS
-------------------
Each response shape has a pydantic model describing just the fields we
use.  Extra fields are ignored, so new firmware never breaks a scrape.
Missing or mistyped REQUIRED fields raise a pydantic ValidationError,
which is turned into SchemaMismatch.

List responses are decoded one element at a time:

  envelope broken  ({"error": ...} instead of {"data": [...]})
      → SchemaMismatch, the whole scrape fails
  one element broken (a device without "model")
      → that element is skipped and logged, the rest are returned

One odd access point should not blank out the dashboards for the other
hundred devices on the site.

COUNTERS
---------
Byte and packet counters must be JSON integers in [0, 2^64).  A string,
a float or a negative number is a schema problem, not something to
coerce.  Gauges (utilisation, signal strength, rates) are plain floats
and may be negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictInt, ValidationError

from unifi_exporter.core.errors import SchemaMismatch
from unifi_exporter.core.metrics import RECORDS_SKIPPED
from unifi_exporter.models.client import ClientRecord
from unifi_exporter.models.controller import ControllerInfo, SiteRecord
from unifi_exporter.models.device import DeviceRecord, DeviceStatistics, PortCounters

logger = logging.getLogger(__name__)

UINT64_MAX = 2**64 - 1

Counter = Annotated[StrictInt, Field(ge=0, le=UINT64_MAX)]


def _utf8_text(value: str) -> str:
    # exposition output is UTF-8; a lone surrogate from a \ud800 escape cannot be encoded
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("text is not valid UTF-8") from None
    return value


Text = Annotated[str, AfterValidator(_utf8_text)]

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SkippedRecord:
    record_type: str
    index: int
    record_id: str | None
    reason: str


@dataclass(frozen=True, slots=True)
class DecodeResult(Generic[T]):
    records: tuple[T, ...]
    skipped: tuple[SkippedRecord, ...] = ()


# ---------------------------------------------------------------------------
# Wire shapes
# ---------------------------------------------------------------------------


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class _InfoPayload(_Wire):
    application_version: Text = Field(alias="applicationVersion")


class _SitePayload(_Wire):
    id: Text
    internal_reference: Text = Field(alias="internalReference")
    name: Text


class _DevicePayload(_Wire):
    id: Text
    name: Text
    model: Text
    mac_address: Text = Field(alias="macAddress")
    state: Text
    ip_address: Text | None = Field(default=None, alias="ipAddress")


class _PortPayload(_Wire):
    idx: int = Field(strict=True)
    rx_bytes: Counter | None = Field(default=None, alias="rxBytes")
    tx_bytes: Counter | None = Field(default=None, alias="txBytes")
    rx_packets: Counter | None = Field(default=None, alias="rxPackets")
    tx_packets: Counter | None = Field(default=None, alias="txPackets")


class _InterfaceStatsPayload(_Wire):
    ports: list[_PortPayload] | None = None


class _UplinkPayload(_Wire):
    tx_rate_bps: float | None = Field(default=None, alias="txRateBps")
    rx_rate_bps: float | None = Field(default=None, alias="rxRateBps")


class _StatisticsPayload(_Wire):
    uptime_sec: Counter | None = Field(default=None, alias="uptimeSec")
    cpu_utilization_pct: float | None = Field(default=None, alias="cpuUtilizationPct")
    memory_utilization_pct: float | None = Field(default=None, alias="memoryUtilizationPct")
    load_average_1min: float | None = Field(default=None, alias="loadAverage1Min")
    load_average_5min: float | None = Field(default=None, alias="loadAverage5Min")
    load_average_15min: float | None = Field(default=None, alias="loadAverage15Min")
    uplink: _UplinkPayload | None = None
    interfaces: _InterfaceStatsPayload | None = None


class _ClientPayload(_Wire):
    id: Text
    type: Text
    mac_address: Text = Field(alias="macAddress")
    name: Text | None = None
    uplink_device_id: Text | None = Field(default=None, alias="uplinkDeviceId")
    connected_at: datetime | None = Field(default=None, alias="connectedAt")
    signal: float | None = None
    rx_bytes: Counter | None = Field(default=None, alias="rxBytes")
    tx_bytes: Counter | None = Field(default=None, alias="txBytes")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _envelope_items(raw: Any, what: str) -> list[Any]:
    if not isinstance(raw, dict):
        raise SchemaMismatch(f"{what} response is a {type(raw).__name__}, expected an object")
    data = raw.get("data")
    if not isinstance(data, list):
        raise SchemaMismatch(f"{what} response has no 'data' list")
    return data


def _skip(
    record_type: str, index: int, item: Any, reason: str, site: str | None = None
) -> SkippedRecord:
    record_id = item.get("id") if isinstance(item, dict) else None
    if record_id is not None:
        record_id = str(record_id)
    logger.warning(
        "Skipping %s #%d (id=%s) at site %s: %s",
        record_type,
        index,
        record_id,
        site or "-",
        reason,
        extra={"site": site, "record_type": record_type},
    )
    RECORDS_SKIPPED.labels(record_type=record_type).inc()
    return SkippedRecord(record_type=record_type, index=index, record_id=record_id, reason=reason)


def _timestamp(value: datetime | None) -> float | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


# ---------------------------------------------------------------------------
# Public decoders
# ---------------------------------------------------------------------------


def decode_info(raw: Any) -> ControllerInfo:
    try:
        payload = _InfoPayload.model_validate(raw)
    except ValidationError as exc:
        raise SchemaMismatch(f"info response: {_describe(exc)}") from None
    return ControllerInfo(application_version=payload.application_version)


def decode_sites(raw: Any) -> DecodeResult[SiteRecord]:
    records: list[SiteRecord] = []
    skipped: list[SkippedRecord] = []
    seen: set[str] = set()

    for index, item in enumerate(_envelope_items(raw, "sites")):
        try:
            payload = _SitePayload.model_validate(item)
        except ValidationError as exc:
            skipped.append(_skip("site", index, item, _describe(exc)))
            continue
        if payload.id in seen:
            skipped.append(_skip("site", index, item, "duplicate id"))
            continue
        seen.add(payload.id)
        records.append(
            SiteRecord(id=payload.id, reference=payload.internal_reference, name=payload.name)
        )

    return DecodeResult(records=tuple(records), skipped=tuple(skipped))


def decode_devices(raw: Any, site: str) -> DecodeResult[DeviceRecord]:
    """Decode a device list.  Statistics are attached later by the collector."""
    records: list[DeviceRecord] = []
    skipped: list[SkippedRecord] = []
    seen: set[str] = set()

    for index, item in enumerate(_envelope_items(raw, "devices")):
        try:
            payload = _DevicePayload.model_validate(item)
        except ValidationError as exc:
            skipped.append(_skip("device", index, item, _describe(exc), site))
            continue
        if payload.id in seen:
            skipped.append(_skip("device", index, item, "duplicate id", site))
            continue
        seen.add(payload.id)
        records.append(
            DeviceRecord(
                id=payload.id,
                mac=payload.mac_address.lower(),
                name=payload.name,
                model=payload.model,
                site=site,
                state=payload.state,
                ip=payload.ip_address,
            )
        )

    return DecodeResult(records=tuple(records), skipped=tuple(skipped))


def decode_device_statistics(raw: Any) -> DeviceStatistics:
    """Decode one device's latest statistics.

    Every field is optional; absent or null values read as zero.  Ports
    are sorted by index and de-duplicated (first occurrence wins).
    """
    try:
        payload = _StatisticsPayload.model_validate(raw)
    except ValidationError as exc:
        raise SchemaMismatch(f"device statistics: {_describe(exc)}") from None

    ports: dict[int, PortCounters] = {}
    raw_ports = payload.interfaces.ports if payload.interfaces else None
    for port in raw_ports or ():
        if port.idx in ports:
            continue
        ports[port.idx] = PortCounters(
            idx=port.idx,
            rx_bytes=port.rx_bytes or 0,
            tx_bytes=port.tx_bytes or 0,
            rx_packets=port.rx_packets or 0,
            tx_packets=port.tx_packets or 0,
        )

    uplink = payload.uplink
    return DeviceStatistics(
        uptime_seconds=payload.uptime_sec or 0,
        cpu_utilization_pct=payload.cpu_utilization_pct or 0.0,
        memory_utilization_pct=payload.memory_utilization_pct or 0.0,
        load_average_1min=payload.load_average_1min or 0.0,
        load_average_5min=payload.load_average_5min or 0.0,
        load_average_15min=payload.load_average_15min or 0.0,
        uplink_tx_rate_bps=(uplink.tx_rate_bps if uplink else None) or 0.0,
        uplink_rx_rate_bps=(uplink.rx_rate_bps if uplink else None) or 0.0,
        ports=tuple(ports[idx] for idx in sorted(ports)),
    )


def decode_clients(raw: Any, site: str) -> DecodeResult[ClientRecord]:
    records: list[ClientRecord] = []
    skipped: list[SkippedRecord] = []
    seen: set[str] = set()

    for index, item in enumerate(_envelope_items(raw, "clients")):
        try:
            payload = _ClientPayload.model_validate(item)
        except ValidationError as exc:
            skipped.append(_skip("client", index, item, _describe(exc), site))
            continue
        if payload.id in seen:
            skipped.append(_skip("client", index, item, "duplicate id", site))
            continue
        seen.add(payload.id)
        mac = payload.mac_address.lower()
        records.append(
            ClientRecord(
                id=payload.id,
                mac=mac,
                name=payload.name or mac,
                type=payload.type.lower(),
                site=site,
                uplink_device_id=payload.uplink_device_id or "",
                connected_at=_timestamp(payload.connected_at),
                signal_dbm=payload.signal,
                rx_bytes=payload.rx_bytes,
                tx_bytes=payload.tx_bytes,
            )
        )

    return DecodeResult(records=tuple(records), skipped=tuple(skipped))
