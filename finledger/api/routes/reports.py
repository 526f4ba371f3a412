"""Financial report endpoints."""
from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from finledger.api.deps import get_db_session, get_report_cache, get_report_job_queue, get_tenant_id
from finledger.api.errors import to_http_exception
from finledger.models import ReportType
from finledger.schemas.report import (
    BalanceSheetRead,
    CashFlowRead,
    DashboardSummaryRead,
    ExpenseCategoryRead,
    ProfitAndLossRead,
)
from finledger.services.errors import LedgerError, ValidationError
from finledger.services.report_cache import ReportCache, ReportCacheService
from finledger.services.report_jobs import ReportJob, ReportJobQueue
from finledger.services.reporting import ReportingEngine, month_start

router = APIRouter(prefix="/reports")


def _today() -> date:
    return datetime.now(timezone.utc).date()


@router.get("/profit-loss", response_model=ProfitAndLossRead)
def profit_and_loss(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> ProfitAndLossRead:
    end = end or _today()
    start = start or month_start(end)
    try:
        report = ReportingEngine(session).profit_and_loss(tenant_id, start, end)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return ProfitAndLossRead.model_validate(report.to_dict())


@router.get("/balance-sheet", response_model=BalanceSheetRead)
def balance_sheet(
    as_of: date | None = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> BalanceSheetRead:
    report = ReportingEngine(session).balance_sheet(tenant_id, as_of or _today())
    return BalanceSheetRead.model_validate(report.to_dict())


@router.get("/cash-flow", response_model=CashFlowRead)
def cash_flow(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> CashFlowRead:
    end = end or _today()
    start = start or month_start(end)
    try:
        report = ReportingEngine(session).cash_flow(tenant_id, start, end)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return CashFlowRead.model_validate(report.to_dict())


@router.get("/dashboard-summary", response_model=DashboardSummaryRead)
def dashboard_summary(
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
    cache: ReportCache = Depends(get_report_cache),
) -> DashboardSummaryRead:
    service = ReportCacheService(session, cache=cache)
    try:
        cached = service.dashboard_summary(tenant_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    response.headers["X-Report-Source"] = cached.tier
    return DashboardSummaryRead.model_validate(cached.payload)


@router.get("/top-expenses", response_model=list[ExpenseCategoryRead])
def top_expenses(
    month: date | None = Query(default=None),
    limit: int = Query(default=5, ge=1, le=50),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> list[ExpenseCategoryRead]:
    categories = ReportingEngine(session).top_expense_categories(tenant_id, month=month, limit=limit)
    return [ExpenseCategoryRead.model_validate(item.to_dict()) for item in categories]


@router.post("/recompute", status_code=status.HTTP_202_ACCEPTED)
def request_recompute(
    report_type: ReportType = Query(default=ReportType.DASHBOARD_SUMMARY),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    as_of: date | None = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> dict[str, str]:
    if report_type in (ReportType.PROFIT_LOSS, ReportType.CASH_FLOW) and (start is None or end is None):
        raise to_http_exception(ValidationError(f"start and end are required for {report_type.value}"))
    job = ReportJob(
        tenant_id=tenant_id,
        report_type=report_type,
        period_start=start,
        period_end=end,
        as_of=as_of,
        reason="on_demand",
    )
    queue.enqueue(job)
    return {"job_id": job.job_id, "status": "queued"}


__all__ = [
    "balance_sheet",
    "cash_flow",
    "dashboard_summary",
    "profit_and_loss",
    "request_recompute",
    "router",
    "top_expenses",
]
