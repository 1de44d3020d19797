from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PortCounters:
    """Cumulative traffic counters for one switch/gateway port.

    All four values are unsigned and only ever increase while the device
    stays up.  A reboot resets them on the device side; that shows up in
    Prometheus as a counter decrease, which rate() already handles.
    """

    idx: int
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0


@dataclass(frozen=True, slots=True)
class DeviceStatistics:
    uptime_seconds: int = 0
    cpu_utilization_pct: float = 0.0
    memory_utilization_pct: float = 0.0
    load_average_1min: float = 0.0
    load_average_5min: float = 0.0
    load_average_15min: float = 0.0
    uplink_tx_rate_bps: float = 0.0
    uplink_rx_rate_bps: float = 0.0
    ports: tuple[PortCounters, ...] = ()


# Devices the controller has no statistics for (usually offline ones)
# still get a full set of samples, all zero.
EMPTY_STATISTICS = DeviceStatistics()


@dataclass(frozen=True, slots=True)
class DeviceRecord:
    id: str
    mac: str
    name: str
    model: str
    site: str
    state: str
    ip: str | None = None
    statistics: DeviceStatistics = EMPTY_STATISTICS

    @property
    def online(self) -> bool:
        return self.state.upper() == "ONLINE"
