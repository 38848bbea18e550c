"""FastAPI application server."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import JSONResponse, Response

from courier_hub.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from courier_hub.api.routes import router, set_orchestrator
from courier_hub.api.webhooks import router as webhooks_router
from courier_hub.config import Settings, get_settings, validate_startup_settings
from courier_hub.couriers.registry import CourierRegistry
from courier_hub.delivery.orchestrator import DeliveryOrchestrator
from courier_hub.exceptions import CourierHubError
from courier_hub.observability.logging import configure_logging
from courier_hub.observability.telemetry import (
    TelemetryConfig,
    init_telemetry,
    shutdown_telemetry,
)
from courier_hub.security.vault import CredentialVault
from courier_hub.storage.base import DeliveryStore
from courier_hub.storage.memory import InMemoryDeliveryStore
from courier_hub.storage.postgres import PostgresDeliveryStore

logger = logging.getLogger(__name__)

# Global state
_store: DeliveryStore | None = None
_registry: CourierRegistry | None = None


def build_store(settings: Settings) -> DeliveryStore:
    """Delivery store for the configured backend."""
    if settings.store_backend == "db":
        return PostgresDeliveryStore(database_url=settings.database_url)
    return InMemoryDeliveryStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Initializes and shuts down:
    - Structured logging
    - OpenTelemetry (tracing + metrics)
    - Delivery store
    - Courier adapter registry
    - Credential vault and orchestrator
    """
    global _store, _registry

    settings = get_settings()

    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
    )

    logger.info("Starting Courier Hub...")

    # Refuses to start in production with insecure settings
    validate_startup_settings(settings)

    if settings.enable_tracing or settings.enable_metrics:
        telemetry_config = TelemetryConfig(
            service_name=settings.service_name,
            service_version=settings.api_version,
            environment=settings.service_environment,
            otlp_endpoint=settings.otlp_endpoint,
            enable_tracing=settings.enable_tracing,
            enable_metrics=settings.enable_metrics,
        )
        init_telemetry(telemetry_config)
        logger.info("OpenTelemetry initialized")

    _store = build_store(settings)
    await _store.connect()
    logger.info("Delivery store: %s backend", settings.store_backend)

    _registry = CourierRegistry(settings)
    vault = CredentialVault(settings.resolve_encryption_key(), salt=settings.credential_kdf_salt)

    orchestrator = DeliveryOrchestrator(store=_store, vault=vault, registry=_registry)
    set_orchestrator(orchestrator)
    app.state.orchestrator = orchestrator
    logger.info("Courier Hub ready (%d courier providers)", len(_registry.providers))

    yield

    logger.info("Shutting down Courier Hub...")
    set_orchestrator(None)

    if _registry:
        await _registry.close()
        logger.info("Courier HTTP clients closed")

    if _store:
        await _store.close()
        logger.info("Delivery store closed")

    shutdown_telemetry()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=(
            "Courier Hub API. "
            "Assigns orders to Algerian delivery companies, creates shipments and labels, "
            "and tracks parcels through courier APIs and webhooks."
        ),
        lifespan=lifespan,
    )

    # Domain exception handler: map CourierHubError to JSON response
    @app.exception_handler(CourierHubError)
    async def courier_hub_error_handler(request: Request, exc: CourierHubError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers (X-Content-Type-Options, X-Frame-Options)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(router)
    app.include_router(webhooks_router)

    @app.get("/health", include_in_schema=False)
    async def health():
        """Liveness: the process is up and the orchestrator is initialized."""
        ready = getattr(app.state, "orchestrator", None) is not None
        return {"status": "ok" if ready else "starting", "version": settings.api_version}

    if settings.enable_metrics:

        @app.get("/metrics", include_in_schema=False)
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "courier_hub.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
