"""FastAPI application entry point for Custody Core.

Run with:
    uvicorn custody.api.main:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from custody.api.middleware.logging_middleware import LoggingMiddleware
from custody.api.middleware.metrics_middleware import MetricsMiddleware
from custody.api.routes import (
    exports_router,
    health_router,
    ledger_router,
    metrics_router,
    verification_router,
)
from custody.bootstrap.container import CustodyContainer, build_container
from custody.config import ApiConfig
from custody.infrastructure.observability.logging import configure_structlog


def create_app(container: CustodyContainer | None = None) -> FastAPI:
    """Build the application.

    Args:
        container: Pre-built services. When omitted the container is built
            from the environment at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.container is None
        if owned:
            configure_structlog(ApiConfig.from_environment().environment)
            app.state.container = build_container()
        try:
            yield
        finally:
            if owned:
                await app.state.container.close()
                app.state.container = None

    app = FastAPI(
        title="Custody Core API",
        description="Append-only audit ledger, audit exports and public verification",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Added last runs first: correlation id is set before metrics are taken
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(exports_router)
    app.include_router(verification_router)
    app.include_router(ledger_router)
    return app


app = create_app()
