"""HTTP client for the UniFi Network integration API.

This is the only module that talks to the network.  Everything it
returns is raw JSON (a "snapshot"); turning that into typed records is
the decoder's job.

ONE CLIENT, MANY SCRAPES
--------------------------
A single httpx.AsyncClient (and so a single connection pool) is built at
startup and shared by every concurrent scrape.  The client holds no
per-request state: each call builds its own request, gets its own
response, and hands back a fresh snapshot.  Two scrapes running at the
same time never see each other's data.

TLS TRUST
----------
UniFi consoles ship with a self-issued certificate.  Rather than
silently turning verification off, the operator picks a trust mode:

  verify:    normal verification against the system store, or against
             UNIFI_CA_BUNDLE if you exported the console's certificate
  insecure:  no verification at all; logged loudly at startup

TIMEOUTS, NOT RETRIES
----------------------
Every request is bounded by UNIFI_TIMEOUT_SECONDS.  A timeout, refused
connection or TLS failure becomes UpstreamUnavailable straight away.
There is no retry loop here: Prometheus scrapes again on its next
interval, which is all the retrying an exporter needs.
"""

from __future__ import annotations

import logging
import ssl
import time
from typing import Any

import httpx

from unifi_exporter.core.errors import AuthRejected, SchemaMismatch, UpstreamUnavailable
from unifi_exporter.core.metrics import UPSTREAM_DURATION, UPSTREAM_REQUESTS
from unifi_exporter.models.controller import ControllerEndpoint

logger = logging.getLogger(__name__)

RawSnapshot = Any

API_PREFIX = "/proxy/network/integration/v1"
API_PATH_INFO = f"{API_PREFIX}/info"
API_PATH_SITES = f"{API_PREFIX}/sites"
API_PATH_DEVICES = f"{API_PREFIX}/sites/{{site_id}}/devices"
API_PATH_DEVICE_STATISTICS = (
    f"{API_PREFIX}/sites/{{site_id}}/devices/{{device_id}}/statistics/latest"
)
API_PATH_CLIENTS = f"{API_PREFIX}/sites/{{site_id}}/clients"

# The controller caps `limit` at 200 for list endpoints.
PAGE_LIMIT = 200
MAX_PAGES = 100


def _tls_verify(endpoint: ControllerEndpoint) -> ssl.SSLContext | bool:
    if endpoint.tls_mode == "insecure":
        logger.warning(
            "TLS verification DISABLED for %s (UNIFI_TLS_MODE=insecure)",
            endpoint.base_url,
        )
        return False
    if endpoint.ca_bundle:
        logger.info("Verifying controller certificate against %s", endpoint.ca_bundle)
        return ssl.create_default_context(cafile=endpoint.ca_bundle)
    return True


class UnifiClient:
    """Authenticated, timeout-bounded access to the controller API."""

    def __init__(
        self,
        endpoint: ControllerEndpoint,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._http = httpx.AsyncClient(
            base_url=endpoint.base_url,
            headers={"Accept": "application/json", **endpoint.auth_headers()},
            timeout=httpx.Timeout(endpoint.timeout_seconds),
            verify=_tls_verify(endpoint),
            transport=transport,
        )

    async def __aenter__(self) -> UnifiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch(
        self,
        path: str,
        *,
        endpoint: str = "other",
        params: dict[str, int] | None = None,
    ) -> RawSnapshot:
        """GET one API path and return its JSON body.

        `endpoint` is a low-cardinality name for the call ("devices",
        "clients", ...) used in the exporter's own metrics; the real
        path contains UUIDs and must never become a label.

        Raises:
            UpstreamUnavailable: timeout, transport/TLS failure, a body
                that does not match its Content-Encoding, or a non-2xx
                status other than 401/403
            AuthRejected: the controller answered 401 or 403
            SchemaMismatch: a 2xx body that is not JSON
        """
        start = time.monotonic()
        try:
            response = await self._http.get(path, params=params)
        except httpx.TimeoutException as exc:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="timeout").inc()
            raise UpstreamUnavailable(
                f"timed out after {self.endpoint.timeout_seconds:g}s requesting {path}: "
                f"{type(exc).__name__}"
            ) from exc
        except httpx.DecodingError as exc:
            # Content-Encoding that does not match the body
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="decoding_error").inc()
            raise UpstreamUnavailable(
                f"could not decode controller response for {path}: {exc}"
            ) from exc
        except httpx.RequestError as exc:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="transport_error").inc()
            raise UpstreamUnavailable(
                f"could not reach controller for {path}: {type(exc).__name__}: {exc}"
            ) from exc
        finally:
            UPSTREAM_DURATION.labels(endpoint=endpoint).observe(time.monotonic() - start)

        status_code = response.status_code
        logger.debug("GET %s → %d", path, status_code)

        if status_code in (401, 403):
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="auth_rejected").inc()
            raise AuthRejected(
                f"controller rejected the API token for {path} (HTTP {status_code})",
                status_code=status_code,
            )

        if not response.is_success:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="http_error").inc()
            raise UpstreamUnavailable(
                f"controller answered HTTP {status_code} for {path}",
                status_code=status_code,
            )

        UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="ok").inc()
        try:
            return response.json()
        except ValueError as exc:
            raise SchemaMismatch(f"response for {path} is not valid JSON") from exc

    async def fetch_paged(self, path: str, *, endpoint: str = "other") -> RawSnapshot:
        """Follow offset/limit pagination and merge every page's `data`.

        The controller wraps list responses in an envelope:

          {"offset": 0, "limit": 200, "count": 200, "totalCount": 412, "data": [...]}

        Anything that doesn't look like that envelope is returned as-is
        so the decoder can report it as a schema problem.
        """
        items: list[Any] = []
        offset = 0
        for _ in range(MAX_PAGES):
            page = await self.fetch(
                path, endpoint=endpoint, params={"offset": offset, "limit": PAGE_LIMIT}
            )
            if not isinstance(page, dict) or not isinstance(page.get("data"), list):
                return page

            data = page["data"]
            items.extend(data)
            total = page.get("totalCount")
            if not data or not isinstance(total, int) or len(items) >= total:
                break
            offset += len(data)
        else:
            logger.warning(
                "Stopped paging %s after %d pages (%d items)", path, MAX_PAGES, len(items)
            )

        return {"data": items, "totalCount": len(items)}

    # -----------------------------------------------------------------------
    # Named endpoints
    # -----------------------------------------------------------------------

    async def get_info(self) -> RawSnapshot:
        return await self.fetch(API_PATH_INFO, endpoint="info")

    async def get_sites(self) -> RawSnapshot:
        return await self.fetch_paged(API_PATH_SITES, endpoint="sites")

    async def get_devices(self, site_id: str) -> RawSnapshot:
        return await self.fetch_paged(
            API_PATH_DEVICES.format(site_id=site_id), endpoint="devices"
        )

    async def get_device_statistics(self, site_id: str, device_id: str) -> RawSnapshot:
        return await self.fetch(
            API_PATH_DEVICE_STATISTICS.format(site_id=site_id, device_id=device_id),
            endpoint="device_statistics",
        )

    async def get_clients(self, site_id: str) -> RawSnapshot:
        return await self.fetch_paged(
            API_PATH_CLIENTS.format(site_id=site_id), endpoint="clients"
        )
