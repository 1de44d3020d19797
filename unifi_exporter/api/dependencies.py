from __future__ import annotations

from fastapi import Request

from unifi_exporter.core.config import Settings
from unifi_exporter.services.unifi_client import UnifiClient


def get_unifi_client(request: Request) -> UnifiClient:
    """The controller client built (or injected) in create_app's lifespan.

    Used as a FastAPI dependency, so tests can swap it with
    app.dependency_overrides without touching module state.
    """
    return request.app.state.unifi_client


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
