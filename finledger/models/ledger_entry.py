"""Ledger entry ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finledger.models.base import Base, CreatedAtMixin


class AccountType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class LedgerEntry(CreatedAtMixin, Base):
    """One side of a balanced posting.

    Rows are append-only. ``sequence`` orders the entries of a single
    ``(tenant_id, account)`` and the unique constraint on it rejects a second
    writer that computed its running balance from a stale predecessor.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "account", "sequence", name="uq_ledger_entries_account_sequence"),
        Index("ix_ledger_entries_tenant_id", "tenant_id"),
        Index("ix_ledger_entries_tenant_type_date", "tenant_id", "account_type", "occurred_at"),
        Index("ix_ledger_entries_transaction_id", "transaction_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True
    )
    account: Mapped[str] = mapped_column(String(128), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type", values_callable=lambda types: [t.value for t in types]),
        nullable=False,
    )
    debit: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    occurred_at: Mapped[date] = mapped_column(Date, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    running_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    tenant = relationship("Tenant", back_populates="ledger_entries")
    transaction = relationship("Transaction", back_populates="ledger_entries")


__all__ = ["AccountType", "LedgerEntry"]
