"""UPI gateway webhook and bank statement import endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finledger.api.deps import get_db_session, get_report_job_queue, get_tenant_id
from finledger.api.errors import to_http_exception
from finledger.models import TransactionSource
from finledger.schemas.ingestion import (
    BankImportError,
    BankImportRequest,
    BankImportResponse,
    UpiWebhookPayload,
    UpiWebhookResponse,
)
from finledger.schemas.transaction import TransactionRead
from finledger.services.errors import LedgerError
from finledger.services.ingestion import BankStatementLine, IngestionService, UpiWebhookEvent
from finledger.services.ledger import LedgerService
from finledger.services.report_jobs import ReportJobQueue

router = APIRouter(prefix="/upi")


@router.post("/webhook", response_model=UpiWebhookResponse)
def upi_webhook(
    payload: UpiWebhookPayload,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> UpiWebhookResponse:
    service = IngestionService(LedgerService(session, queue=queue))
    event = UpiWebhookEvent(
        upi_id=payload.upi_id,
        amount=payload.amount,
        transaction_id=payload.transaction_id,
        status=payload.status,
        description=payload.description,
        payment_method=payload.payment_method,
        timestamp=payload.timestamp,
        metadata=payload.metadata,
    )
    try:
        outcome = service.process_upi_webhook(tenant_id=tenant_id, event=event)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc

    if outcome.result is None:
        return UpiWebhookResponse(status=outcome.status, message="Transaction not successful, ignored")
    message = (
        "Transaction already processed"
        if outcome.status == "duplicate"
        else "UPI transaction processed successfully"
    )
    return UpiWebhookResponse(
        status=outcome.status,
        message=message,
        transaction_id=outcome.result.transaction.id,
        ledger_entries_count=len(outcome.result.entries),
    )


@router.post("/bank-import", response_model=BankImportResponse)
def bank_import(
    payload: BankImportRequest,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> BankImportResponse:
    service = IngestionService(LedgerService(session, queue=queue))
    lines = [
        BankStatementLine(
            date=row.date,
            amount=row.amount,
            reference=row.reference,
            description=row.description,
        )
        for row in payload.transactions
    ]
    report = service.import_bank_statement(tenant_id=tenant_id, lines=lines)
    return BankImportResponse(
        message=f"Processed {report.processed} transactions",
        processed=report.processed,
        duplicates=report.duplicates,
        errors=report.errors,
        error_details=[BankImportError(**detail) for detail in report.error_details],
    )


@router.get("/transactions", response_model=list[TransactionRead])
def upi_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> list[TransactionRead]:
    transactions = LedgerService(session).list_transactions(
        tenant_id=tenant_id, source=TransactionSource.UPI, limit=limit
    )
    return [TransactionRead.model_validate(item) for item in transactions]


__all__ = ["bank_import", "router", "upi_transactions", "upi_webhook"]
