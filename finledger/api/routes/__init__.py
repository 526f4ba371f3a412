"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from finledger.api.routes import health, ingestion, reports, transactions


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(transactions.router, tags=["transactions"])
    api_router.include_router(reports.router, tags=["reports"])
    api_router.include_router(ingestion.router, tags=["upi"])

    application.include_router(api_router)


__all__ = ["register_routes"]
