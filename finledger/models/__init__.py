"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, CreatedAtMixin, TimestampMixin
from .financial_report import FinancialReport, ReportType
from .ledger_entry import AccountType, LedgerEntry
from .tenant import Tenant, TenantStatus
from .transaction import Transaction, TransactionKind, TransactionSource

__all__ = [
    "AccountType",
    "AuditLog",
    "Base",
    "CreatedAtMixin",
    "FinancialReport",
    "LedgerEntry",
    "ReportType",
    "Tenant",
    "TenantStatus",
    "TimestampMixin",
    "Transaction",
    "TransactionKind",
    "TransactionSource",
]
