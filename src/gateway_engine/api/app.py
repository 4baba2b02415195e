"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gateway_engine.api.routes import gateways_router, health_router, payments_router
from gateway_engine.config import create_sandbox_config, get_settings, validate_production_config
from gateway_engine.database import create_session_factory, create_tables, get_engine
from gateway_engine.engine import Engine, build_engine
from gateway_engine.exceptions import (
    ErrorKind,
    GatewayEngineError,
    GatewayNotConfiguredError,
    PaymentNotFoundError,
)
from gateway_engine.logging_config import configure_logging
from gateway_engine.repositories.sql import SqlAlchemyPaymentRepository

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STATE: status.HTTP_409_CONFLICT,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TRANSIENT: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERMANENT: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build a sandbox engine over the configured database unless one was given."""
    if getattr(app.state, "engine", None) is not None:
        yield
        return

    settings = get_settings()
    configure_logging(settings.log_level)
    db_engine = get_engine(settings.database_url, echo=settings.debug)
    await create_tables(db_engine)

    config = settings.engine_config(create_sandbox_config().gateways)
    for issue in validate_production_config(config):
        logger.warning("Configuration: %s", issue)
    app.state.engine = build_engine(
        config, repository=SqlAlchemyPaymentRepository(create_session_factory(db_engine))
    )
    try:
        yield
    finally:
        await db_engine.dispose()


def create_app(engine: Engine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Prebuilt engine. When omitted, one is built at startup from
            environment settings.
    """
    app = FastAPI(
        title="Gateway Engine API",
        description="Payment gateway orchestration - status and operations",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(GatewayEngineError)
    async def engine_exception_handler(request: Request, exc: GatewayEngineError) -> JSONResponse:
        """Map engine errors to HTTP status by error kind."""
        if isinstance(exc, (GatewayNotConfiguredError, PaymentNotFoundError)):
            status_code = status.HTTP_404_NOT_FOUND
        else:
            status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": str(exc),
                "code": type(exc).__name__,
                "context": {k: v for k, v in exc.context.items() if v is not None and k != "criteria"},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(gateways_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
