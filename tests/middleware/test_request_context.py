"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- One summary log line carrying the same ID
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from unifi_exporter.middleware.request_context import (
    _RequestContextFilter,
    install_request_id_filter,
    request_id_var,
)
from tests.fakes import FakeController


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/healthz")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "prometheus-scrape-123"
    resp = client.get("/healthz", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_failed_scrape(
    controller: FakeController, client: TestClient
) -> None:
    controller.status_overrides["info"] = 401
    resp = client.get("/metrics")
    assert resp.status_code == 503
    assert resp.headers.get("x-request-id") is not None


def test_request_summary_logged_with_context(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="unifi_exporter.middleware.request_context"):
        client.get("/healthz", headers={"X-Request-ID": "req-42"})

    records = [r for r in caplog.records if r.name.endswith("request_context")]
    assert len(records) == 1
    record = records[0]
    assert record.request_id == "req-42"  # type: ignore[attr-defined]
    assert record.method == "GET"  # type: ignore[attr-defined]
    assert record.path == "/healthz"  # type: ignore[attr-defined]
    assert record.status_code == 200  # type: ignore[attr-defined]


def test_request_id_reset_after_request(client: TestClient) -> None:
    client.get("/healthz", headers={"X-Request-ID": "req-43"})
    assert request_id_var.get() == "-"


def test_filter_injects_current_request_id() -> None:
    record = logging.LogRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
    token = request_id_var.set("req-44")
    try:
        assert _RequestContextFilter().filter(record) is True
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-44"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = logging.LogRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
    record.request_id = "explicit"  # type: ignore[attr-defined]
    _RequestContextFilter().filter(record)
    assert record.request_id == "explicit"  # type: ignore[attr-defined]


def test_install_request_id_filter_is_idempotent() -> None:
    handler = logging.StreamHandler()
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        install_request_id_filter()
        install_request_id_filter()
        filters = [f for f in handler.filters if isinstance(f, _RequestContextFilter)]
        assert len(filters) == 1
    finally:
        root.removeHandler(handler)
