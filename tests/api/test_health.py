from __future__ import annotations

from fastapi.testclient import TestClient

from tests.fakes import FakeController


def test_healthz_returns_ok(client: TestClient) -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.text == "ok\n"
    assert resp.headers["content-type"].startswith("text/plain")


def test_healthz_ignores_controller_outage(
    controller: FakeController, client: TestClient
) -> None:
    for route in ("info", "sites", "devices", "clients"):
        controller.status_overrides[route] = 500

    assert client.get("/metrics").status_code == 503
    assert client.get("/healthz").status_code == 200


def test_healthz_does_not_call_controller(
    controller: FakeController, client: TestClient
) -> None:
    client.get("/healthz")
    assert controller.requests == []
