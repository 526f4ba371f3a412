"""Pydantic schemas package."""

from .ingestion import (
    BankImportError,
    BankImportRequest,
    BankImportResponse,
    BankStatementRow,
    UpiWebhookPayload,
    UpiWebhookResponse,
)
from .report import (
    AccountBalanceRead,
    BalanceSheetRead,
    BalanceSheetSummaryRead,
    CashFlowRead,
    DashboardSummaryRead,
    ExpenseCategoryRead,
    PeriodSummaryRead,
    ProfitAndLossRead,
)
from .transaction import (
    ExpenseCreate,
    LedgerEntryRead,
    TransactionCreate,
    TransactionPostingResponse,
    TransactionRead,
    TransactionUpdate,
)

__all__ = [
    "AccountBalanceRead",
    "BalanceSheetRead",
    "BalanceSheetSummaryRead",
    "BankImportError",
    "BankImportRequest",
    "BankImportResponse",
    "BankStatementRow",
    "CashFlowRead",
    "DashboardSummaryRead",
    "ExpenseCategoryRead",
    "ExpenseCreate",
    "LedgerEntryRead",
    "PeriodSummaryRead",
    "ProfitAndLossRead",
    "TransactionCreate",
    "TransactionPostingResponse",
    "TransactionRead",
    "TransactionUpdate",
    "UpiWebhookPayload",
    "UpiWebhookResponse",
]
