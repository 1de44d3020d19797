"""The exporter's own telemetry.

Two different sets of metrics leave this process:

  1. /metrics: the controller's state, rebuilt from scratch on every
     scrape in a throwaway registry (see services/renderer.py).  Nothing
     in this module ever appears there.

  2. /exporter/metrics: how the exporter itself is doing, kept in the
     prometheus_client default registry for the lifetime of the process.
     Point a second scrape job at it if you want to alert on the
     exporter rather than on the network.

Keeping the two apart means a failed scrape of (1) is a clean 503 with
no body, while (2) can still tell you WHY it failed:

  sum by (kind) (rate(unifi_exporter_scrape_errors_total[5m]))
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "unifi_exporter_http_requests_total",
    "HTTP requests served by the exporter, by method, endpoint and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "unifi_exporter_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # A scrape is a handful of controller round-trips; anything past the
    # scrape deadline (10s by default) has already failed.
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "unifi_exporter_http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Scrape pipeline metrics
# ---------------------------------------------------------------------------

UPSTREAM_REQUESTS = Counter(
    "unifi_exporter_upstream_requests_total",
    "Requests made to the controller API",
    ["endpoint", "outcome"],  # outcome: ok, timeout, transport_error, decoding_error, auth_rejected, http_error
)

UPSTREAM_DURATION = Histogram(
    "unifi_exporter_upstream_request_duration_seconds",
    "Controller API request duration in seconds",
    ["endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

SCRAPE_ERRORS = Counter(
    "unifi_exporter_scrape_errors_total",
    "Scrapes of /metrics that ended in a 503, by error kind",
    ["kind"],
)

RECORDS_SKIPPED = Counter(
    "unifi_exporter_records_skipped_total",
    "Controller records dropped because they could not be decoded",
    ["record_type"],  # "site", "device", "device_statistics", "client"
)
