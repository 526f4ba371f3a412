"""ASGI entrypoint for the ledger API."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from finledger.api.errors import to_http_exception
from finledger.api.routes import register_routes
from finledger.core.config import Settings, get_settings
from finledger.core.logging import configure_logging
from finledger.obs import (
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)
from finledger.services.errors import LedgerError

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "transactions", "description": "Record, correct and remove ledger transactions."},
    {"name": "reports", "description": "Financial statements and the cached dashboard summary."},
    {"name": "upi", "description": "UPI gateway webhooks and bank statement imports."},
    {"name": "health", "description": "Liveness and readiness probes."},
]


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Last-resort mapping for ledger errors a route did not translate itself."""

    http_exc = to_http_exception(exc)
    if http_exc.status_code >= 500:
        logger.error(
            "unhandled ledger error",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_application(settings: Settings | None = None) -> FastAPI:
    """Build the ledger API with logging, metrics and tracing wired from ``settings``."""
    settings = settings or get_settings()
    configure_logging(settings)

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        openapi_tags=OPENAPI_TAGS,
    )
    application.add_exception_handler(LedgerError, ledger_error_handler)

    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    logger.info(
        "ledger api configured",
        extra={"metrics": settings.enable_metrics, "tracing": settings.enable_tracing},
    )
    return application


app = create_application()
