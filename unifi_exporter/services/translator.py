"""Map decoded records onto Prometheus samples.

NAMING
-------
One metric name per quantity, shared by every device on every site:

  unifi_device_uptime_seconds{site="default",device_id="6f1c...",device="Lobby AP"} 86400

never one name per device (unifi_lobby_ap_uptime_seconds).  The set of
metric NAMES stays constant no matter how big the network gets; only
the number of label combinations grows.

Every sample of a given name carries exactly the same label keys, in
the same order.  The renderer refuses anything else.

OFFLINE IS A VALUE, NOT AN ABSENCE
------------------------------------
An offline device still produces unifi_device_up 0 and all of its
counters.  If it disappeared instead, a dashboard could not tell "this
AP is down" from "this AP was never adopted".

COUNTERS PASS THROUGH
----------------------
Byte/packet counters are emitted exactly as the controller reports
them.  When a switch reboots its counters drop to zero; Prometheus
sees a decrease and rate()/increase() treat it as a reset.  Nothing here
tries to detect or paper over that.

translate() is a pure function: records are sorted before emission, so
the same input always yields the same samples in the same order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from unifi_exporter.models.client import ClientRecord
from unifi_exporter.models.controller import ControllerInfo, SiteRecord
from unifi_exporter.models.device import DeviceRecord
from unifi_exporter.models.sample import MetricSample, MetricType

DEVICE_LABELS = ("site", "device_id", "device")
PORT_LABELS = (*DEVICE_LABELS, "port")
CLIENT_LABELS = ("site", "client_id", "client", "mac", "type", "device_id")


@dataclass(frozen=True, slots=True)
class _Metric:
    name: str
    type: MetricType
    help: str


CONTROLLER_INFO = _Metric("unifi_controller_info", "gauge", "Controller software version")
SITE_INFO = _Metric("unifi_site_info", "gauge", "Sites known to the controller")

DEVICE_INFO = _Metric("unifi_device_info", "gauge", "Static device attributes")
DEVICE_UP = _Metric("unifi_device_up", "gauge", "1 if the device is online, 0 otherwise")
DEVICE_UPTIME = _Metric("unifi_device_uptime_seconds", "gauge", "Uptime in seconds")
DEVICE_CPU = _Metric("unifi_device_cpu_utilization_pct", "gauge", "CPU usage (%)")
DEVICE_MEMORY = _Metric("unifi_device_memory_utilization_pct", "gauge", "Memory usage (%)")
DEVICE_LOAD_1 = _Metric("unifi_device_load_average_1min", "gauge", "Load avg over 1min")
DEVICE_LOAD_5 = _Metric("unifi_device_load_average_5min", "gauge", "Load avg over 5min")
DEVICE_LOAD_15 = _Metric("unifi_device_load_average_15min", "gauge", "Load avg over 15min")
DEVICE_TX_RATE = _Metric("unifi_device_uplink_tx_rate_bps", "gauge", "Uplink TX rate in bps")
DEVICE_RX_RATE = _Metric("unifi_device_uplink_rx_rate_bps", "gauge", "Uplink RX rate in bps")
DEVICE_CLIENTS = _Metric(
    "unifi_device_clients", "gauge", "Connected clients whose uplink is this device"
)

PORT_RX_BYTES = _Metric(
    "unifi_device_port_receive_bytes_total", "counter", "Bytes received on the port"
)
PORT_TX_BYTES = _Metric(
    "unifi_device_port_transmit_bytes_total", "counter", "Bytes transmitted on the port"
)
PORT_RX_PACKETS = _Metric(
    "unifi_device_port_receive_packets_total", "counter", "Packets received on the port"
)
PORT_TX_PACKETS = _Metric(
    "unifi_device_port_transmit_packets_total", "counter", "Packets transmitted on the port"
)

CLIENT_UP = _Metric("unifi_client_up", "gauge", "1 if the client is connected, 0 otherwise")
CLIENT_CONNECTED_AT = _Metric(
    "unifi_client_connected_timestamp_seconds",
    "gauge",
    "Unix time the client's current session started",
)
CLIENT_SIGNAL = _Metric("unifi_client_signal_dbm", "gauge", "Wireless signal strength in dBm")
CLIENT_RX_BYTES = _Metric(
    "unifi_client_receive_bytes_total", "counter", "Bytes received from the client"
)
CLIENT_TX_BYTES = _Metric(
    "unifi_client_transmit_bytes_total", "counter", "Bytes transmitted to the client"
)


class _Samples:
    def __init__(self) -> None:
        self.items: list[MetricSample] = []

    def add(self, metric: _Metric, labels: Sequence[tuple[str, str]], value: float) -> None:
        self.items.append(
            MetricSample(
                name=metric.name,
                labels=tuple(labels),
                value=float(value),
                type=metric.type,
                help=metric.help,
            )
        )


def _device_labels(device: DeviceRecord) -> tuple[tuple[str, str], ...]:
    return (("site", device.site), ("device_id", device.id), ("device", device.name))


def _client_labels(client: ClientRecord) -> tuple[tuple[str, str], ...]:
    return (
        ("site", client.site),
        ("client_id", client.id),
        ("client", client.name),
        ("mac", client.mac),
        ("type", client.type),
        ("device_id", client.uplink_device_id),
    )


def _translate_devices(
    out: _Samples, devices: Sequence[DeviceRecord], clients: Sequence[ClientRecord]
) -> None:
    attached: dict[tuple[str, str], int] = {}
    for client in clients:
        if client.connected and client.uplink_device_id:
            key = (client.site, client.uplink_device_id)
            attached[key] = attached.get(key, 0) + 1

    for device in devices:
        out.add(
            DEVICE_INFO,
            (
                *_device_labels(device),
                ("model", device.model),
                ("mac", device.mac),
                ("ip", device.ip or ""),
            ),
            1,
        )

    gauges = (
        (DEVICE_UP, lambda d: 1 if d.online else 0),
        (DEVICE_UPTIME, lambda d: d.statistics.uptime_seconds),
        (DEVICE_CPU, lambda d: d.statistics.cpu_utilization_pct),
        (DEVICE_MEMORY, lambda d: d.statistics.memory_utilization_pct),
        (DEVICE_LOAD_1, lambda d: d.statistics.load_average_1min),
        (DEVICE_LOAD_5, lambda d: d.statistics.load_average_5min),
        (DEVICE_LOAD_15, lambda d: d.statistics.load_average_15min),
        (DEVICE_TX_RATE, lambda d: d.statistics.uplink_tx_rate_bps),
        (DEVICE_RX_RATE, lambda d: d.statistics.uplink_rx_rate_bps),
        (DEVICE_CLIENTS, lambda d: attached.get((d.site, d.id), 0)),
    )
    for metric, value_of in gauges:
        for device in devices:
            out.add(metric, _device_labels(device), value_of(device))

    counters = (
        (PORT_RX_BYTES, "rx_bytes"),
        (PORT_TX_BYTES, "tx_bytes"),
        (PORT_RX_PACKETS, "rx_packets"),
        (PORT_TX_PACKETS, "tx_packets"),
    )
    for metric, attr in counters:
        for device in devices:
            for port in device.statistics.ports:
                labels = (*_device_labels(device), ("port", str(port.idx)))
                out.add(metric, labels, getattr(port, attr))


def _translate_clients(out: _Samples, clients: Sequence[ClientRecord]) -> None:
    for client in clients:
        out.add(CLIENT_UP, _client_labels(client), 1 if client.connected else 0)

    for client in clients:
        if client.connected_at is not None:
            out.add(CLIENT_CONNECTED_AT, _client_labels(client), client.connected_at)

    for client in clients:
        if client.signal_dbm is not None:
            out.add(CLIENT_SIGNAL, _client_labels(client), client.signal_dbm)

    for client in clients:
        if client.rx_bytes is not None:
            out.add(CLIENT_RX_BYTES, _client_labels(client), client.rx_bytes)

    for client in clients:
        if client.tx_bytes is not None:
            out.add(CLIENT_TX_BYTES, _client_labels(client), client.tx_bytes)


def translate(
    devices: Iterable[DeviceRecord],
    clients: Iterable[ClientRecord],
    sites: Iterable[SiteRecord] = (),
    info: ControllerInfo | None = None,
) -> list[MetricSample]:
    """Turn one scrape's records into a flat, ordered list of samples."""
    ordered_devices = sorted(devices, key=lambda d: (d.site, d.id))
    ordered_clients = sorted(clients, key=lambda c: (c.site, c.id))
    ordered_sites = sorted(sites, key=lambda s: (s.reference, s.id))

    out = _Samples()

    if info is not None:
        out.add(CONTROLLER_INFO, (("version", info.application_version),), 1)

    for site in ordered_sites:
        out.add(
            SITE_INFO,
            (("site", site.reference), ("site_id", site.id), ("site_name", site.name)),
            1,
        )

    _translate_devices(out, ordered_devices, ordered_clients)
    _translate_clients(out, ordered_clients)
    return out.items
