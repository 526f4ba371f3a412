"""Transaction and expense API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from finledger.api.deps import get_actor, get_db_session, get_report_job_queue, get_tenant_id
from finledger.api.errors import to_http_exception
from finledger.models import TransactionKind, TransactionSource
from finledger.schemas.transaction import (
    ExpenseCreate,
    LedgerEntryRead,
    TransactionCreate,
    TransactionPostingResponse,
    TransactionRead,
    TransactionUpdate,
)
from finledger.services.classifier import TransactionRequest
from finledger.services.errors import LedgerError
from finledger.services.ledger import LedgerService, PostingResult
from finledger.services.report_jobs import ReportJobQueue

router = APIRouter()


def _posting_response(result: PostingResult, response: Response) -> TransactionPostingResponse:
    if result.duplicate:
        response.status_code = status.HTTP_200_OK
    return TransactionPostingResponse(
        transaction=TransactionRead.model_validate(result.transaction),
        ledger_entries=[LedgerEntryRead.model_validate(entry) for entry in result.entries],
        duplicate=result.duplicate,
    )


def _record(
    service: LedgerService, *, tenant_id: str, request: TransactionRequest, actor: str | None
) -> PostingResult:
    try:
        return service.record_transaction(tenant_id=tenant_id, request=request, actor=actor)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/transactions",
    response_model=TransactionPostingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    payload: TransactionCreate,
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    actor: str | None = Depends(get_actor),
    session: Session = Depends(get_db_session),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> TransactionPostingResponse:
    service = LedgerService(session, queue=queue)
    request = TransactionRequest(
        kind=payload.kind,
        amount=payload.amount,
        description=payload.description,
        category=payload.category,
        payment_method=payload.payment_method,
        reference=payload.reference,
        vendor=payload.vendor,
        occurred_at=payload.occurred_at,
        source=payload.source,
        metadata=payload.metadata,
    )
    result = _record(service, tenant_id=tenant_id, request=request, actor=actor)
    return _posting_response(result, response)


@router.post(
    "/expenses",
    response_model=TransactionPostingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    payload: ExpenseCreate,
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    actor: str | None = Depends(get_actor),
    session: Session = Depends(get_db_session),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> TransactionPostingResponse:
    service = LedgerService(session, queue=queue)
    request = TransactionRequest(
        kind=TransactionKind.EXPENSE,
        amount=payload.amount,
        description=payload.description,
        category=payload.category,
        payment_method=payload.payment_method,
        vendor=payload.vendor,
        occurred_at=payload.occurred_at,
        source=TransactionSource.EXPENSE,
        metadata=payload.metadata,
    )
    result = _record(service, tenant_id=tenant_id, request=request, actor=actor)
    return _posting_response(result, response)


@router.get("/transactions", response_model=list[TransactionRead])
def list_transactions(
    source: str | None = Query(default=None, max_length=32),
    limit: int | None = Query(default=None, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> list[TransactionRead]:
    service = LedgerService(session)
    transactions = service.list_transactions(tenant_id=tenant_id, source=source, limit=limit)
    return [TransactionRead.model_validate(item) for item in transactions]


@router.get("/transactions/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str,
    tenant_id: str = Depends(get_tenant_id),
    session: Session = Depends(get_db_session),
) -> TransactionRead:
    service = LedgerService(session)
    try:
        transaction = service.get_transaction(tenant_id=tenant_id, transaction_id=transaction_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionRead.model_validate(transaction)


@router.put("/transactions/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    tenant_id: str = Depends(get_tenant_id),
    actor: str | None = Depends(get_actor),
    session: Session = Depends(get_db_session),
) -> TransactionRead:
    service = LedgerService(session)
    try:
        transaction = service.update_transaction(
            tenant_id=tenant_id,
            transaction_id=transaction_id,
            changes=payload.model_dump(exclude_unset=True),
            actor=actor,
        )
    except LedgerError as exc:
        session.rollback()
        raise to_http_exception(exc) from exc
    return TransactionRead.model_validate(transaction)


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: str,
    tenant_id: str = Depends(get_tenant_id),
    actor: str | None = Depends(get_actor),
    session: Session = Depends(get_db_session),
    queue: ReportJobQueue = Depends(get_report_job_queue),
) -> None:
    service = LedgerService(session, queue=queue)
    try:
        service.delete_transaction(tenant_id=tenant_id, transaction_id=transaction_id, actor=actor)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


__all__ = [
    "create_expense",
    "create_transaction",
    "delete_transaction",
    "get_transaction",
    "list_transactions",
    "router",
    "update_transaction",
]
