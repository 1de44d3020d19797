from __future__ import annotations

import asyncio
import logging
import time

import httpx
import pytest
from prometheus_client.parser import text_string_to_metric_families

from unifi_exporter.core.errors import AuthRejected, SchemaMismatch, UpstreamUnavailable
from unifi_exporter.models.device import EMPTY_STATISTICS
from unifi_exporter.services.collector import collect_snapshot, scrape, verify_controller
from unifi_exporter.services.unifi_client import UnifiClient
from tests.conftest import AP_ID, SWITCH_ID
from tests.fakes import (
    SITE_ID,
    FakeController,
    device_payload,
    make_endpoint,
    site_payload,
    statistics_payload,
)


def _families(text: str) -> dict[str, list]:
    return {f.name: f.samples for f in text_string_to_metric_families(text)}


def _by_device(samples: list) -> dict[str, float]:
    return {s.labels["device"]: s.value for s in samples}


def _scrape(fake: FakeController, deadline: float = 5.0) -> str:
    return asyncio.run(scrape(fake.client(), deadline_seconds=deadline))


# ---- the happy path ----


def test_scrape_reports_devices_ports_and_clients(controller: FakeController) -> None:
    families = _families(_scrape(controller))

    assert _by_device(families["unifi_device_up"]) == {"Core Switch": 1.0, "Garage AP": 0.0}
    assert _by_device(families["unifi_device_uptime_seconds"]) == {
        "Core Switch": 86400.0,
        "Garage AP": 0.0,
    }
    assert _by_device(families["unifi_device_clients"]) == {"Core Switch": 2.0, "Garage AP": 0.0}

    rx = {s.labels["port"]: s.value for s in families["unifi_device_port_receive_bytes"]}
    assert rx == {"1": 123_456_789.0, "2": 0.0}

    assert {s.labels["client"] for s in families["unifi_client_up"]} == {"laptop", "printer"}
    assert [s.labels["client"] for s in families["unifi_client_signal_dbm"]] == ["laptop"]
    assert families["unifi_controller_info"][0].labels["version"] == "9.0.114"
    assert families["unifi_site_info"][0].labels["site"] == "default"


def test_collect_snapshot_attaches_statistics(controller: FakeController) -> None:
    snapshot = asyncio.run(collect_snapshot(controller.client()))

    devices = {d.id: d for d in snapshot.devices}
    assert devices[SWITCH_ID].statistics.uptime_seconds == 86400
    assert [p.idx for p in devices[SWITCH_ID].statistics.ports] == [1, 2]
    # the AP has no statistics (404) and reads as all zeros
    assert devices[AP_ID].statistics == EMPTY_STATISTICS
    assert snapshot.skipped == ()


def test_scrape_is_repeatable(controller: FakeController) -> None:
    assert _scrape(controller) == _scrape(controller)


def test_concurrent_scrapes_share_one_client(controller: FakeController) -> None:
    client = controller.client()

    async def _run() -> list[str]:
        return await asyncio.gather(*(scrape(client, deadline_seconds=5.0) for _ in range(5)))

    bodies = asyncio.run(_run())
    assert len(set(bodies)) == 1


def test_multiple_sites_use_site_reference_label(controller: FakeController) -> None:
    controller.sites.append(site_payload("site-2", "branch", "Branch Office"))
    controller.devices["site-2"] = [device_payload("dev-branch", "Branch Switch")]
    controller.clients["site-2"] = []

    families = _families(_scrape(controller))

    sites = {s.labels["device"]: s.labels["site"] for s in families["unifi_device_up"]}
    assert sites["Branch Switch"] == "branch"
    assert sites["Core Switch"] == "default"


def test_empty_site_renders_only_controller_series() -> None:
    families = _families(_scrape(FakeController()))

    assert set(families) == {"unifi_controller_info", "unifi_site_info"}


# ---- partial failures ----


def test_one_malformed_device_is_skipped() -> None:
    fake = FakeController()
    fake.devices[SITE_ID] = [device_payload(f"dev-{i}", f"AP {i}") for i in range(10)]
    del fake.devices[SITE_ID][4]["state"]

    families = _families(_scrape(fake))

    assert len(families["unifi_device_up"]) == 9
    assert "AP 4" not in _by_device(families["unifi_device_up"])


def test_malformed_statistics_skip_only_that_device(
    controller: FakeController, caplog: pytest.LogCaptureFixture
) -> None:
    controller.statistics[SWITCH_ID] = statistics_payload(uptime=-1)

    with caplog.at_level(logging.WARNING):
        snapshot = asyncio.run(collect_snapshot(controller.client()))

    assert [d.id for d in snapshot.devices] == [AP_ID]
    assert snapshot.skipped[0].record_type == "device_statistics"
    assert snapshot.skipped[0].record_id == SWITCH_ID
    assert any(SWITCH_ID in m for m in caplog.messages)


# ---- whole-scrape failures ----


def test_statistics_server_error_fails_the_scrape(controller: FakeController) -> None:
    controller.status_overrides["statistics"] = 500
    with pytest.raises(UpstreamUnavailable) as exc_info:
        _scrape(controller)
    assert exc_info.value.status_code == 500


def test_rejected_token_fails_the_scrape(controller: FakeController) -> None:
    controller.status_overrides["devices"] = 401
    with pytest.raises(AuthRejected):
        _scrape(controller)


def test_broken_device_envelope_fails_the_scrape(controller: FakeController) -> None:
    controller.raw_overrides["devices"] = {"error": "internal"}
    with pytest.raises(SchemaMismatch):
        _scrape(controller)


def test_scrape_deadline(controller: FakeController) -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return controller.handler(request)

    client = UnifiClient(make_endpoint(), transport=httpx.MockTransport(slow))

    start = time.monotonic()
    with pytest.raises(UpstreamUnavailable, match="deadline"):
        asyncio.run(scrape(client, deadline_seconds=0.2))
    assert time.monotonic() - start < 0.9


# ---- startup check ----


def test_verify_controller_returns_info(
    controller: FakeController, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO):
        info = asyncio.run(verify_controller(controller.client()))

    assert info is not None
    assert info.application_version == "9.0.114"
    assert any("Connected to UniFi controller" in m for m in caplog.messages)


def test_verify_controller_logs_rejected_token(
    controller: FakeController, caplog: pytest.LogCaptureFixture
) -> None:
    controller.status_overrides["info"] = 403

    with caplog.at_level(logging.INFO):
        assert asyncio.run(verify_controller(controller.client())) is None

    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert errors and "rejected the API token" in errors[0].getMessage()


def test_verify_controller_tolerates_unreachable_controller(
    controller: FakeController, caplog: pytest.LogCaptureFixture
) -> None:
    controller.status_overrides["info"] = 502

    with caplog.at_level(logging.INFO):
        assert asyncio.run(verify_controller(controller.client())) is None

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("upstream_unavailable" in r.getMessage() for r in warnings)
