from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

AuthScheme = Literal["bearer", "api-key"]
TlsMode = Literal["verify", "insecure"]


@dataclass(frozen=True, slots=True)
class ControllerEndpoint:
    """Where the controller lives and how to talk to it.

    Built once at startup from Settings and owned by the UnifiClient.
    The token is excluded from repr so it never leaks into logs or
    tracebacks.
    """

    base_url: str
    api_token: str = field(repr=False)
    auth_scheme: AuthScheme = "bearer"
    tls_mode: TlsMode = "verify"
    ca_bundle: str | None = None
    timeout_seconds: float = 5.0

    def auth_headers(self) -> dict[str, str]:
        if self.auth_scheme == "api-key":
            return {"X-API-KEY": self.api_token}
        return {"Authorization": f"Bearer {self.api_token}"}


@dataclass(frozen=True, slots=True)
class ControllerInfo:
    application_version: str


@dataclass(frozen=True, slots=True)
class SiteRecord:
    """A controller site.

    id:        controller-assigned UUID, used in API paths
    reference: internal reference (e.g. "default"), used as the site label
    name:      human-readable name, free to change at any time
    """

    id: str
    reference: str
    name: str
