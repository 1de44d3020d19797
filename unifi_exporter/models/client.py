from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ClientRecord:
    """A station attached to the network, wired or wireless.

    signal_dbm, rx_bytes and tx_bytes are None when the controller does
    not report them (wired clients never have a signal, for example).
    connected_at is a Unix timestamp in seconds.
    """

    id: str
    mac: str
    name: str
    type: str
    site: str
    uplink_device_id: str = ""
    connected_at: float | None = None
    signal_dbm: float | None = None
    rx_bytes: int | None = None
    tx_bytes: int | None = None

    @property
    def connected(self) -> bool:
        return self.connected_at is not None
