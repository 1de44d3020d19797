from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from unifi_exporter.models.controller import AuthScheme, ControllerEndpoint, TlsMode

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    host: str
    port: int
    unifi_endpoint: str
    unifi_api_token: str
    unifi_auth_scheme: AuthScheme
    unifi_tls_mode: TlsMode
    unifi_ca_bundle: str | None
    unifi_timeout_seconds: float
    scrape_timeout_seconds: float

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    def endpoint(self) -> ControllerEndpoint:
        """The controller connection details handed to the upstream client."""
        return ControllerEndpoint(
            base_url=self.unifi_endpoint,
            api_token=self.unifi_api_token,
            auth_scheme=self.unifi_auth_scheme,
            tls_mode=self.unifi_tls_mode,
            ca_bundle=self.unifi_ca_bundle,
            timeout_seconds=self.unifi_timeout_seconds,
        )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    host = _getenv("HOST", "0.0.0.0")
    port_raw = _getenv("PORT", "8080")
    endpoint_raw = _getenv("UNIFI_API_ENDPOINT", "https://192.168.3.254").rstrip("/")
    token = _getenv("UNIFI_API_TOKEN", "")
    auth_scheme_raw = _getenv("UNIFI_AUTH_SCHEME", "bearer").lower()
    tls_mode_raw = _getenv("UNIFI_TLS_MODE", "verify").lower()
    ca_bundle = _getenv("UNIFI_CA_BUNDLE", "") or None
    timeout_raw = _getenv("UNIFI_TIMEOUT_SECONDS", "5")
    scrape_timeout_raw = _getenv("SCRAPE_TIMEOUT_SECONDS", "10")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    parts = urlsplit(endpoint_raw)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(
            f"UNIFI_API_ENDPOINT must be an http(s) URL (got {endpoint_raw!r})"
        )

    if not token:
        raise ValueError("UNIFI_API_TOKEN is required")

    if auth_scheme_raw not in ("bearer", "api-key"):
        raise ValueError(
            f"UNIFI_AUTH_SCHEME must be bearer|api-key (got {auth_scheme_raw!r})"
        )

    if tls_mode_raw not in ("verify", "insecure"):
        raise ValueError(
            f"UNIFI_TLS_MODE must be verify|insecure (got {tls_mode_raw!r})"
        )

    if ca_bundle is not None and tls_mode_raw == "insecure":
        raise ValueError("UNIFI_CA_BUNDLE cannot be combined with UNIFI_TLS_MODE=insecure")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in _TRUTHY,
        host=host,
        port=port,
        unifi_endpoint=endpoint_raw,
        unifi_api_token=token,
        unifi_auth_scheme=auth_scheme_raw,
        unifi_tls_mode=tls_mode_raw,
        unifi_ca_bundle=ca_bundle,
        unifi_timeout_seconds=_positive_float("UNIFI_TIMEOUT_SECONDS", timeout_raw),
        scrape_timeout_seconds=_positive_float("SCRAPE_TIMEOUT_SECONDS", scrape_timeout_raw),
    )
