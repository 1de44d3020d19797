from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import unifi_exporter` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from unifi_exporter.core.config import Settings  # noqa: E402
from unifi_exporter.main import create_app  # noqa: E402
from tests.fakes import (  # noqa: E402
    BASE_URL,
    SITE_ID,
    TOKEN,
    FakeController,
    client_payload,
    device_payload,
    port_payload,
    statistics_payload,
)

SWITCH_ID = "0b6b2a8c-7f1e-4d4e-9e37-1f0c2b0a0001"
AP_ID = "0b6b2a8c-7f1e-4d4e-9e37-1f0c2b0a0002"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "app_env": "test",
        "log_level": "info",
        "log_json": False,
        "host": "127.0.0.1",
        "port": 8080,
        "unifi_endpoint": BASE_URL,
        "unifi_api_token": TOKEN,
        "unifi_auth_scheme": "bearer",
        "unifi_tls_mode": "verify",
        "unifi_ca_bundle": None,
        "unifi_timeout_seconds": 2.0,
        "scrape_timeout_seconds": 10.0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def controller() -> FakeController:
    """One site with an online switch (two ports), an offline AP and two clients."""
    fake = FakeController()
    fake.devices[SITE_ID] = [
        device_payload(
            SWITCH_ID,
            "Core Switch",
            model="USW-24-PoE",
            mac="F4:E2:C6:00:00:01",
            ip="192.168.1.2",
        ),
        device_payload(
            AP_ID,
            "Garage AP",
            state="OFFLINE",
            mac="F4:E2:C6:00:00:02",
            ip=None,
        ),
    ]
    fake.statistics[SWITCH_ID] = statistics_payload(
        ports=[
            port_payload(1, rx_bytes=123_456_789, tx_bytes=987_654_321),
            port_payload(2, rx_bytes=0, tx_bytes=0, rx_packets=0, tx_packets=0),
        ]
    )
    fake.clients[SITE_ID] = [
        client_payload(
            "c0000000-0000-0000-0000-000000000001",
            "laptop",
            mac="AA:BB:CC:00:00:01",
            uplink_device_id=SWITCH_ID,
        ),
        client_payload(
            "c0000000-0000-0000-0000-000000000002",
            "printer",
            client_type="WIRED",
            mac="AA:BB:CC:00:00:02",
            uplink_device_id=SWITCH_ID,
            signal=None,
            rx_bytes=None,
            tx_bytes=None,
        ),
    ]
    return fake


@pytest.fixture
def client(controller: FakeController) -> TestClient:
    app = create_app(make_settings(), client=controller.client())
    return TestClient(app)
