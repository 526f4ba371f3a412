"""Pydantic schemas for transaction resources."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from finledger.models import AccountType, TransactionKind


class TransactionCreate(BaseModel):
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0)
    description: str = Field(default="", max_length=2000)
    category: str | None = Field(default=None, max_length=128)
    payment_method: str = Field(default="cash", min_length=1, max_length=64)
    reference: str | None = Field(default=None, max_length=128)
    vendor: str | None = Field(default=None, max_length=255)
    occurred_at: date | None = None
    source: str = Field(default="manual", min_length=1, max_length=32)
    metadata: dict | None = None


class ExpenseCreate(BaseModel):
    """Expense entry; the category is guessed from the description when omitted."""

    amount: Decimal = Field(..., gt=0)
    description: str = Field(default="", max_length=2000)
    category: str | None = Field(default=None, max_length=128)
    payment_method: str = Field(default="cash", min_length=1, max_length=64)
    vendor: str | None = Field(default=None, max_length=255)
    occurred_at: date | None = None
    metadata: dict | None = None


class TransactionUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=2000)
    category: str | None = Field(default=None, max_length=128)
    reference: str | None = Field(default=None, max_length=128)
    vendor: str | None = Field(default=None, max_length=255)
    metadata: dict | None = None


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal
    sequence: int
    running_balance: Decimal
    occurred_at: date


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    kind: TransactionKind
    amount: Decimal
    description: str
    category: str | None
    payment_method: str
    reference: str | None
    vendor: str | None
    occurred_at: date
    source: str
    metadata: dict | None = Field(default=None, validation_alias="details")
    created_at: datetime
    ledger_entries: list[LedgerEntryRead] = Field(default_factory=list)


class TransactionPostingResponse(BaseModel):
    transaction: TransactionRead
    ledger_entries: list[LedgerEntryRead]
    duplicate: bool = False


__all__ = [
    "ExpenseCreate",
    "LedgerEntryRead",
    "TransactionCreate",
    "TransactionPostingResponse",
    "TransactionRead",
    "TransactionUpdate",
]
