"""Pydantic schemas for UPI webhooks and bank statement imports."""
from __future__ import annotations

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class UpiWebhookPayload(BaseModel):
    upi_id: str | None = Field(default=None, max_length=255)
    amount: Decimal
    description: str | None = Field(default=None, max_length=2000)
    transaction_id: str = Field(..., min_length=1, max_length=128)
    payment_method: str = Field(default="upi", min_length=1, max_length=64)
    timestamp: datetime.date | None = None
    status: str
    metadata: dict | None = None


class UpiWebhookResponse(BaseModel):
    status: str
    message: str
    transaction_id: str | None = None
    ledger_entries_count: int = 0


class BankStatementRow(BaseModel):
    date: datetime.date
    description: str | None = Field(default=None, max_length=2000)
    amount: Decimal
    reference: str = Field(..., min_length=1, max_length=128)


class BankImportRequest(BaseModel):
    transactions: list[BankStatementRow]


class BankImportError(BaseModel):
    reference: str
    error: str


class BankImportResponse(BaseModel):
    message: str
    processed: int
    duplicates: int
    errors: int
    error_details: list[BankImportError]


__all__ = [
    "BankImportError",
    "BankImportRequest",
    "BankImportResponse",
    "BankStatementRow",
    "UpiWebhookPayload",
    "UpiWebhookResponse",
]
