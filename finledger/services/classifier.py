"""Turns raw business events into transaction records."""
from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from finledger.models import Transaction, TransactionKind, TransactionSource
from finledger.services.accounts import GENERAL_EXPENSE, ChartOfAccounts
from finledger.services.errors import DuplicateTransactionError, ValidationError

CENT = Decimal("0.01")

# First matching row wins. Keywords match the start of a word in the description.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Utilities", ("phone", "mobile", "telecom")),
    ("Office Supplies", ("office", "stationery", "supplies")),
    ("Travel", ("travel", "taxi", "fuel")),
    ("Salary", ("salary", "payroll")),
    ("Rent", ("rent", "lease")),
)

_WORD = re.compile(r"[a-z0-9]+")


def categorize_expense(description: str | None) -> str:
    """Best-effort keyword guess of an expense category.

    Misclassification only affects reporting granularity; the posting stays
    balanced whatever category is returned.
    """

    words = _WORD.findall((description or "").lower())
    for category, keywords in CATEGORY_KEYWORDS:
        if any(word.startswith(keyword) for word in words for keyword in keywords):
            return category
    return GENERAL_EXPENSE.name


@dataclass(slots=True, frozen=True)
class TransactionRequest:
    """Input data for recording a business event."""

    kind: TransactionKind | str
    amount: Decimal | int | float | str
    description: str = ""
    category: str | None = None
    payment_method: str = "cash"
    reference: str | None = None
    vendor: str | None = None
    occurred_at: date | None = None
    source: str = TransactionSource.MANUAL
    metadata: dict[str, Any] | None = field(default=None, hash=False)


def parse_kind(value: TransactionKind | str) -> TransactionKind:
    try:
        return TransactionKind(value.lower() if isinstance(value, str) else value)
    except ValueError as exc:
        raise ValidationError(f"Unknown transaction kind '{value}'") from exc


def parse_amount(value: Decimal | int | float | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount '{value}'") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount '{value}'")
    amount = amount.quantize(CENT)
    if amount <= 0:
        raise ValidationError("Transaction amount must be greater than zero")
    return amount


class TransactionClassifier:
    """Validates, categorizes and persists transaction rows.

    The classifier never writes ledger entries; that is the posting engine's job.
    """

    def __init__(
        self,
        chart: ChartOfAccounts | None = None,
        *,
        today_fn: Callable[[], date] | None = None,
    ) -> None:
        self._chart = chart or ChartOfAccounts.default()
        self._today = today_fn or (lambda: datetime.now(timezone.utc).date())

    def find_duplicate(
        self,
        session: Session,
        *,
        tenant_id: str,
        source: str,
        reference: str | None,
    ) -> Transaction | None:
        if not reference or source not in TransactionSource.DEDUPLICATED:
            return None
        statement = (
            select(Transaction)
            .where(
                Transaction.tenant_id == tenant_id,
                Transaction.source == source,
                Transaction.reference == reference,
            )
            .limit(1)
        )
        return session.scalars(statement).first()

    def build(self, *, tenant_id: str, request: TransactionRequest) -> Transaction:
        """Validate ``request`` and return an unsaved transaction row."""

        kind = parse_kind(request.kind)
        amount = parse_amount(request.amount)
        metadata = dict(request.metadata or {})

        category = request.category
        if kind == TransactionKind.EXPENSE:
            if not category:
                category = categorize_expense(request.description)
            category = self._chart.expense_account(category).name
        elif kind == TransactionKind.TRANSFER:
            self._chart.transfer_accounts(request.payment_method, metadata.get("destination_account"))

        return Transaction(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            kind=kind,
            amount=amount,
            description=request.description or "",
            category=category,
            payment_method=request.payment_method or "cash",
            reference=request.reference,
            vendor=request.vendor,
            occurred_at=request.occurred_at or self._today(),
            source=request.source or TransactionSource.MANUAL,
            details=metadata or None,
        )

    def classify(self, session: Session, *, tenant_id: str, request: TransactionRequest) -> Transaction:
        """Persist a new transaction row for ``request``.

        Raises :class:`DuplicateTransactionError` when a machine-ingested event
        with the same ``(tenant, source, reference)`` already exists.
        """

        transaction = self.build(tenant_id=tenant_id, request=request)
        existing = self.find_duplicate(
            session,
            tenant_id=tenant_id,
            source=transaction.source,
            reference=transaction.reference,
        )
        if existing is not None:
            raise DuplicateTransactionError(existing)

        session.add(transaction)
        session.flush()
        return transaction


__all__ = [
    "CATEGORY_KEYWORDS",
    "TransactionClassifier",
    "TransactionRequest",
    "categorize_expense",
    "parse_amount",
    "parse_kind",
]
