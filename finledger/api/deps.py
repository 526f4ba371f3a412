"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from finledger.core.config import get_settings
from finledger.db.session import SessionLocal
from finledger.models import Tenant
from finledger.services.report_cache import RedisReportCache, ReportCache
from finledger.services.report_jobs import KafkaReportJobQueue, ReportJobQueue


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_tenant_id(request: Request, session: Session = Depends(get_db_session)) -> str:
    """Resolve the calling tenant from the configured tenant header."""

    settings = get_settings()
    tenant_id = request.headers.get(settings.tenant_header)
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {settings.tenant_header} header",
        )
    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    # End the lookup transaction; postings open their own with a chosen isolation level.
    session.commit()
    return tenant_id


def get_actor(x_actor: str | None = Header(default=None)) -> str | None:
    return x_actor


@lru_cache
def _kafka_queue() -> KafkaReportJobQueue:
    return KafkaReportJobQueue()


def get_report_job_queue() -> ReportJobQueue:
    return _kafka_queue()


@lru_cache
def _redis_cache() -> RedisReportCache:
    return RedisReportCache()


def get_report_cache() -> ReportCache:
    return _redis_cache()


__all__ = [
    "get_actor",
    "get_db_session",
    "get_report_cache",
    "get_report_job_queue",
    "get_tenant_id",
]
