"""FastAPI application factory and dependency injection setup."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from multicurrency_ledger.api.routes import (
    budget_router,
    cron_router,
    currency_router,
    get_db,
    get_rate_provider,
    health_router,
    instrument_router,
    owner_router,
    transaction_router,
)
from multicurrency_ledger.config import get_settings
from multicurrency_ledger.container import get_container, reset_container
from multicurrency_ledger.exceptions import MultiCurrencyLedgerError
from multicurrency_ledger.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

__all__ = ["app", "create_app", "get_db", "get_rate_provider"]

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize logging and the container on startup, release them on shutdown."""
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
        anchor_currency=settings.anchor_currency,
    )

    if get_db not in app.dependency_overrides:
        _ = get_container().database  # Force database initialization

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    reset_container()
    logger.info("application_stopped")


async def log_request_middleware(request: Request, call_next):
    """Middleware to add request context to logs."""
    request_id = str(uuid.uuid4())[:8]
    bind_context(request_id=request_id, path=request.url.path, method=request.method)

    try:
        response = await call_next(request)
        logger.debug(
            "request_completed",
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


async def exception_handler(
    request: Request, exc: MultiCurrencyLedgerError
) -> JSONResponse:
    """Handle domain exceptions and return appropriate JSON responses."""
    logger.warning(
        "domain_exception",
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Multi-currency personal ledger with an exchange-rate cache, "
            "balance aggregation and budget breakdowns"
        ),
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(log_request_middleware)
    app.add_exception_handler(MultiCurrencyLedgerError, exception_handler)

    app.include_router(health_router)
    app.include_router(currency_router)
    app.include_router(owner_router)
    app.include_router(instrument_router)
    app.include_router(transaction_router)
    app.include_router(budget_router)
    app.include_router(cron_router)

    return app


# Create app instance for uvicorn
app = create_app()
