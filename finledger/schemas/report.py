"""Pydantic schemas for financial reports."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class ProfitAndLossRead(BaseModel):
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    period_start: date
    period_end: date


class AccountBalanceRead(BaseModel):
    account: str
    balance: Decimal


class BalanceSheetRead(BaseModel):
    assets: list[AccountBalanceRead]
    liabilities: list[AccountBalanceRead]
    equity: list[AccountBalanceRead]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    as_of: date


class CashFlowRead(BaseModel):
    cash_inflows: Decimal
    cash_outflows: Decimal
    net_cash_flow: Decimal
    period_start: date
    period_end: date


class PeriodSummaryRead(BaseModel):
    income: Decimal
    expenses: Decimal
    net_profit: Decimal
    cash_flow: Decimal | None = None


class BalanceSheetSummaryRead(BaseModel):
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    net_worth: Decimal


class DashboardSummaryRead(BaseModel):
    current_month: PeriodSummaryRead
    year_to_date: PeriodSummaryRead
    balance_sheet: BalanceSheetSummaryRead
    generated_at: datetime


class ExpenseCategoryRead(BaseModel):
    category: str
    amount: Decimal


__all__ = [
    "AccountBalanceRead",
    "BalanceSheetRead",
    "BalanceSheetSummaryRead",
    "CashFlowRead",
    "DashboardSummaryRead",
    "ExpenseCategoryRead",
    "PeriodSummaryRead",
    "ProfitAndLossRead",
]
