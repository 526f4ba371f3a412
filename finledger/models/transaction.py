"""Transaction ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, JSON, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finledger.models.base import Base, TimestampMixin


class TransactionKind(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionSource:
    """Well-known provenance tags; ``source`` itself stays free text."""

    MANUAL = "manual"
    EXPENSE = "expense"
    UPI = "upi"
    BANK_IMPORT = "bank_import"

    # Machine-ingested sources whose (tenant, source, reference) must be unique.
    DEDUPLICATED = frozenset({UPI, BANK_IMPORT})


class Transaction(TimestampMixin, Base):
    """One classified economic event for a tenant."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_tenant_id", "tenant_id"),
        Index("ix_transactions_tenant_source_reference", "tenant_id", "source", "reference"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(TransactionKind, name="transaction_kind", values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str | None] = mapped_column(String(128))
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False, default="cash")
    reference: Mapped[str | None] = mapped_column(String(128))
    vendor: Mapped[str | None] = mapped_column(String(255))
    occurred_at: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default=TransactionSource.MANUAL)
    details: Mapped[dict | None] = mapped_column("metadata", JSON)

    tenant = relationship("Tenant", back_populates="transactions")
    ledger_entries = relationship(
        "LedgerEntry",
        back_populates="transaction",
        cascade="all, delete-orphan",
    )


__all__ = ["Transaction", "TransactionKind", "TransactionSource"]
