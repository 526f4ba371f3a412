"""Tenant ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finledger.models.base import Base, TimestampMixin


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class Tenant(TimestampMixin, Base):
    """An isolated business whose books never mix with another tenant's."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus, name="tenant_status"), nullable=False, default=TenantStatus.ACTIVE
    )

    transactions = relationship("Transaction", back_populates="tenant", cascade="all, delete-orphan")
    ledger_entries = relationship("LedgerEntry", back_populates="tenant", cascade="all, delete-orphan")
    financial_reports = relationship(
        "FinancialReport", back_populates="tenant", cascade="all, delete-orphan"
    )
    audit_logs = relationship("AuditLog", back_populates="tenant", cascade="all, delete-orphan")


__all__ = ["Tenant", "TenantStatus"]
