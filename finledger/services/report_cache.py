"""Cached copies of computed reports.

Reports are derived data: the fast copy lives in Redis with a type-dependent
TTL and the same payload is kept in ``financial_reports`` so a cold cache can
still be served. Either copy may be dropped at any time.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Protocol

import redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finledger.core.config import Settings, get_settings
from finledger.models import FinancialReport, ReportType, Tenant, TenantStatus
from finledger.obs import DASHBOARD_LOOKUPS_COUNTER, REPORT_RECOMPUTE_LATENCY_SECONDS
from finledger.services.errors import ReportRecomputeError, ValidationError
from finledger.services.report_jobs import ReportJob
from finledger.services.reporting import ReportingEngine

logger = logging.getLogger(__name__)

DASHBOARD_PERIOD = "current"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ReportCache(Protocol):
    def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached payload for ``key`` or ``None``."""

    def set(self, key: str, payload: dict[str, Any], ttl_seconds: int) -> None:
        """Store ``payload`` under ``key`` for ``ttl_seconds``."""


class RedisReportCache:
    """JSON report payloads stored in Redis with an expiry."""

    def __init__(self, client: redis.Redis | None = None, *, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)

    def get(self, key: str) -> dict[str, Any] | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, payload: dict[str, Any], ttl_seconds: int) -> None:
        self._client.setex(key, ttl_seconds, json.dumps(payload))


@dataclass(slots=True, frozen=True)
class CachedReport:
    """A report payload together with the tier that produced it."""

    payload: dict[str, Any]
    tier: str


@dataclass(slots=True)
class ReportRefreshSummary:
    """Outcome of a scheduled refresh across tenants."""

    refreshed: int
    failed: int

    def total(self) -> int:
        return self.refreshed + self.failed


class ReportCacheService:
    """Recomputes reports and publishes them to the cache tiers."""

    def __init__(
        self,
        session: Session,
        *,
        cache: ReportCache,
        settings: Settings | None = None,
        engine: ReportingEngine | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._cache = cache
        self._settings = settings or get_settings()
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._engine = engine or ReportingEngine(session, now_fn=self._now)

    def cache_key(self, tenant_id: str, report_type: ReportType, period: str) -> str:
        return f"{self._settings.report_cache_key_prefix}:{tenant_id}:{report_type.value}:{period}"

    def ttl_for(self, report_type: ReportType) -> int:
        if report_type == ReportType.DASHBOARD_SUMMARY:
            return self._settings.dashboard_cache_ttl_seconds
        return self._settings.statement_cache_ttl_seconds

    def period_for(self, job: ReportJob, *, today: date) -> str:
        if job.report_type == ReportType.DASHBOARD_SUMMARY:
            return DASHBOARD_PERIOD
        if job.report_type == ReportType.BALANCE_SHEET:
            return (job.as_of or today).isoformat()
        if job.period_start is None or job.period_end is None:
            raise ReportRecomputeError(f"Period required for {job.report_type.value} report")
        return f"{job.period_start.isoformat()}:{job.period_end.isoformat()}"

    def compute(self, job: ReportJob, *, now: datetime) -> dict[str, Any]:
        today = now.date()
        tenant_id = job.tenant_id
        if job.report_type == ReportType.DASHBOARD_SUMMARY:
            return self._engine.dashboard_summary(tenant_id, now=now).to_dict()
        if job.report_type == ReportType.BALANCE_SHEET:
            return self._engine.balance_sheet(tenant_id, job.as_of or today).to_dict()

        self.period_for(job, today=today)
        if job.report_type == ReportType.PROFIT_LOSS:
            return self._engine.profit_and_loss(tenant_id, job.period_start, job.period_end).to_dict()
        return self._engine.cash_flow(tenant_id, job.period_start, job.period_end).to_dict()

    def recompute(self, job: ReportJob) -> dict[str, Any]:
        """Recompute the report named by ``job`` and store it in both tiers.

        The durable row is flushed, not committed; the caller owns the commit.
        """

        now = self._now()
        period = self.period_for(job, today=now.date())
        with REPORT_RECOMPUTE_LATENCY_SECONDS.labels(report_type=job.report_type.value).time():
            try:
                payload = self.compute(job, now=now)
                expires_at = now + timedelta(seconds=self.ttl_for(job.report_type))
                self._store_durable(job.tenant_id, job.report_type, period, payload, now, expires_at)
            except (SQLAlchemyError, ValidationError) as exc:
                raise ReportRecomputeError(
                    f"Failed to recompute {job.report_type.value} for tenant '{job.tenant_id}'"
                ) from exc
        self._write_cache(self.cache_key(job.tenant_id, job.report_type, period), payload, job.report_type)
        logger.info(
            "report recomputed",
            extra={
                "job_id": job.job_id,
                "tenant_id": job.tenant_id,
                "report_type": job.report_type.value,
                "reason": job.reason,
            },
        )
        return payload

    def _write_cache(self, key: str, payload: dict[str, Any], report_type: ReportType) -> None:
        try:
            self._cache.set(key, payload, self.ttl_for(report_type))
        except RedisError:
            logger.warning("report cache write failed", extra={"cache_key": key}, exc_info=True)

    def _read_cache(self, key: str) -> dict[str, Any] | None:
        try:
            return self._cache.get(key)
        except RedisError:
            logger.warning("report cache read failed", extra={"cache_key": key}, exc_info=True)
            return None

    def _store_durable(
        self,
        tenant_id: str,
        report_type: ReportType,
        period: str,
        payload: dict[str, Any],
        generated_at: datetime,
        expires_at: datetime,
    ) -> FinancialReport:
        report = self._find_durable(tenant_id, report_type, period, generated_at)
        if report is None:
            report = FinancialReport(
                tenant_id=tenant_id,
                type=report_type.value,
                period=period,
                year=generated_at.year,
                month=generated_at.month,
                payload=payload,
                generated_at=generated_at,
                expires_at=expires_at,
            )
            self._session.add(report)
        else:
            report.payload = payload
            report.generated_at = generated_at
            report.expires_at = expires_at
        self._session.flush()
        return report

    def _find_durable(
        self, tenant_id: str, report_type: ReportType, period: str, when: datetime
    ) -> FinancialReport | None:
        statement = select(FinancialReport).where(
            FinancialReport.tenant_id == tenant_id,
            FinancialReport.type == report_type.value,
            FinancialReport.period == period,
            FinancialReport.year == when.year,
            FinancialReport.month == when.month,
        )
        return self._session.scalars(statement).first()

    def dashboard_summary(self, tenant_id: str) -> CachedReport:
        """Serve the dashboard from the cache, the durable copy, or a fresh compute."""

        key = self.cache_key(tenant_id, ReportType.DASHBOARD_SUMMARY, DASHBOARD_PERIOD)
        payload = self._read_cache(key)
        if payload is not None:
            DASHBOARD_LOOKUPS_COUNTER.labels(tier="cache").inc()
            return CachedReport(payload=payload, tier="cache")

        now = self._now()
        stored = self._find_durable(tenant_id, ReportType.DASHBOARD_SUMMARY, DASHBOARD_PERIOD, now)
        if stored is not None and _aware(stored.expires_at) > now:
            DASHBOARD_LOOKUPS_COUNTER.labels(tier="durable").inc()
            remaining = int((_aware(stored.expires_at) - now).total_seconds())
            if remaining > 0:
                try:
                    self._cache.set(key, stored.payload, remaining)
                except RedisError:
                    logger.warning("report cache rewarm failed", extra={"cache_key": key}, exc_info=True)
            return CachedReport(payload=stored.payload, tier="durable")

        payload = self.recompute(ReportJob.dashboard(tenant_id, reason="cache_miss"))
        self._session.commit()
        DASHBOARD_LOOKUPS_COUNTER.labels(tier="computed").inc()
        return CachedReport(payload=payload, tier="computed")

    def active_tenant_ids(self) -> list[str]:
        statement = select(Tenant.id).where(Tenant.status == TenantStatus.ACTIVE).order_by(Tenant.id)
        return list(self._session.scalars(statement))

    def refresh_dashboards(self, tenant_ids: Iterable[str] | None = None) -> ReportRefreshSummary:
        """Recompute every tenant's dashboard, committing each one on its own."""

        summary = ReportRefreshSummary(refreshed=0, failed=0)
        targets = list(tenant_ids) if tenant_ids is not None else self.active_tenant_ids()
        for tenant_id in targets:
            try:
                self.recompute(ReportJob.dashboard(tenant_id, reason="schedule"))
                self._session.commit()
            except (ReportRecomputeError, SQLAlchemyError):
                self._session.rollback()
                summary.failed += 1
                logger.exception("scheduled dashboard refresh failed", extra={"tenant_id": tenant_id})
            else:
                summary.refreshed += 1
        return summary


__all__ = [
    "CachedReport",
    "DASHBOARD_PERIOD",
    "RedisReportCache",
    "ReportCache",
    "ReportCacheService",
    "ReportRefreshSummary",
]
