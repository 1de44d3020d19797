from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from unifi_exporter.api.health import router as health_router
from unifi_exporter.api.metrics_endpoint import router as metrics_router
from unifi_exporter.core.config import Settings, load_settings
from unifi_exporter.core.logging import setup_logging
from unifi_exporter.middleware.metrics import MetricsMiddleware
from unifi_exporter.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)
from unifi_exporter.services.collector import verify_controller
from unifi_exporter.services.unifi_client import UnifiClient

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def create_app(settings: Settings, *, client: UnifiClient | None = None) -> FastAPI:
    """Build the exporter app.

    The controller client is created here (or passed in) and handed to
    request handlers through app.state, never through module globals, so
    tests can build as many independent apps as they like.  A client the
    app created itself is checked at startup and closed at shutdown; an
    injected one belongs to the caller.
    """
    owns_client = client is None
    unifi_client = client if client is not None else UnifiClient(settings.endpoint())

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        if not owns_client:
            yield
            return

        await verify_controller(unifi_client)
        try:
            yield
        finally:
            await unifi_client.aclose()
            logger.info("Controller connection pool closed")

    app = FastAPI(
        title="unifi-exporter",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.unifi_client = unifi_client

    # Middleware execution order: last-added runs first (outermost layer).
    # RequestContext (outermost) → Metrics → route handler
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(metrics_router)
    app.include_router(health_router)

    return app


def run() -> None:
    """Console entry point: `unifi-exporter`."""
    settings = load_settings()

    # Configure logging before anything else runs.
    setup_logging(settings.log_level, json_format=settings.log_json)
    install_request_id_filter()

    logger.info(
        "unifi-exporter %s starting  env=%s controller=%s auth=%s tls=%s port=%d",
        __version__,
        settings.app_env,
        settings.unifi_endpoint,
        settings.unifi_auth_scheme,
        settings.unifi_tls_mode,
        settings.port,
    )
    if settings.is_prod and settings.unifi_tls_mode == "insecure":
        logger.warning(
            "Running in prod with UNIFI_TLS_MODE=insecure; set UNIFI_CA_BUNDLE to the "
            "console's certificate instead"
        )

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    run()
