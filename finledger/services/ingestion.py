"""Machine-ingested transactions: UPI gateway webhooks and bank statements."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from finledger.models import TransactionKind, TransactionSource
from finledger.services.accounts import SALES_REVENUE
from finledger.services.classifier import TransactionRequest, parse_amount
from finledger.services.errors import LedgerError, ValidationError
from finledger.services.ledger import LedgerService, PostingResult

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({"success", "SUCCESS"})
MAX_ERROR_DETAILS = 10


@dataclass(slots=True, frozen=True)
class UpiWebhookEvent:
    """Payment notification delivered by the UPI gateway."""

    upi_id: str | None
    amount: Decimal | str | int | float
    transaction_id: str
    status: str
    description: str | None = None
    payment_method: str = "upi"
    timestamp: date | None = None
    metadata: dict[str, Any] | None = field(default=None, hash=False)


@dataclass(slots=True, frozen=True)
class BankStatementLine:
    """One signed line of an imported bank statement."""

    date: date
    amount: Decimal | str | int | float
    reference: str
    description: str | None = None


@dataclass(slots=True, frozen=True)
class IngestionOutcome:
    status: str
    result: PostingResult | None = None


@dataclass(slots=True)
class BankImportReport:
    """Totals of a statement import; at most ten error details are kept."""

    processed: int = 0
    duplicates: int = 0
    errors: int = 0
    error_details: list[dict[str, str]] = field(default_factory=list)


def _signed_kind(amount: Decimal | str | int | float) -> tuple[TransactionKind, Decimal]:
    """Positive amounts are income and negative ones expenses."""

    try:
        value = Decimal(str(amount))
    except ArithmeticError as exc:
        raise ValidationError(f"Invalid amount '{amount}'") from exc
    if not value.is_finite() or value == 0:
        raise ValidationError("Ingested amount must be non-zero")
    kind = TransactionKind.INCOME if value > 0 else TransactionKind.EXPENSE
    return kind, parse_amount(abs(value))


class IngestionService:
    """Feeds external payment events into the ledger with idempotent references."""

    def __init__(self, ledger: LedgerService) -> None:
        self._ledger = ledger

    def process_upi_webhook(self, *, tenant_id: str, event: UpiWebhookEvent) -> IngestionOutcome:
        if event.status not in SUCCESS_STATUSES:
            logger.info(
                "ignoring unsuccessful upi payment",
                extra={"tenant_id": tenant_id, "reference": event.transaction_id, "status": event.status},
            )
            return IngestionOutcome(status="ignored")
        if not event.transaction_id:
            raise ValidationError("UPI transaction id is required")

        kind, amount = _signed_kind(event.amount)
        metadata = dict(event.metadata or {})
        metadata.update({"upi_id": event.upi_id, "gateway_transaction_id": event.transaction_id})
        request = TransactionRequest(
            kind=kind,
            amount=amount,
            description=event.description or f"UPI Transaction {event.transaction_id}",
            category=SALES_REVENUE.name if kind == TransactionKind.INCOME else None,
            payment_method=event.payment_method or "upi",
            reference=event.transaction_id,
            vendor=event.upi_id,
            occurred_at=event.timestamp,
            source=TransactionSource.UPI,
            metadata=metadata,
        )
        result = self._ledger.record_transaction(tenant_id=tenant_id, request=request, actor="upi-gateway")
        return IngestionOutcome(status="duplicate" if result.duplicate else "processed", result=result)

    def import_bank_statement(self, *, tenant_id: str, lines: list[BankStatementLine]) -> BankImportReport:
        """Record every line independently and request one dashboard refresh at the end."""

        report = BankImportReport()
        for line in lines:
            try:
                kind, amount = _signed_kind(line.amount)
                request = TransactionRequest(
                    kind=kind,
                    amount=amount,
                    description=line.description or f"Bank Transaction {line.reference}",
                    category=SALES_REVENUE.name if kind == TransactionKind.INCOME else None,
                    payment_method="bank",
                    reference=line.reference,
                    occurred_at=line.date,
                    source=TransactionSource.BANK_IMPORT,
                    metadata={"statement_amount": str(line.amount), "statement_date": line.date.isoformat()},
                )
                result = self._ledger.record_transaction(
                    tenant_id=tenant_id, request=request, actor="bank-import", notify=False
                )
            except LedgerError as exc:
                report.errors += 1
                if len(report.error_details) < MAX_ERROR_DETAILS:
                    report.error_details.append({"reference": line.reference, "error": str(exc)})
                logger.warning(
                    "bank statement line rejected",
                    extra={"tenant_id": tenant_id, "reference": line.reference},
                )
                continue
            if result.duplicate:
                report.duplicates += 1
            else:
                report.processed += 1

        self._ledger.request_dashboard_refresh(tenant_id, reason="bank_import")
        logger.info(
            "bank statement imported",
            extra={
                "tenant_id": tenant_id,
                "processed": report.processed,
                "duplicates": report.duplicates,
                "errors": report.errors,
            },
        )
        return report


__all__ = [
    "BankImportReport",
    "BankStatementLine",
    "IngestionOutcome",
    "IngestionService",
    "UpiWebhookEvent",
]
