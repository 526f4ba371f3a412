"""Financial statements aggregated from the ledger.

Every function here is read-only and depends only on the ledger rows of one
tenant and the explicit window arguments, so identical inputs against an
unchanged ledger always produce identical reports. The dashboard summary is
the only report that reads the clock, and only to pick its windows.
"""
from __future__ import annotations

import calendar
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finledger.models import AccountType, LedgerEntry
from finledger.services.accounts import LIQUID_ACCOUNTS
from finledger.services.errors import ValidationError

CENT = Decimal("0.01")


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def year_start(day: date) -> date:
    return day.replace(month=1, day=1)


class _Report:
    __slots__ = ()

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation; decimals become strings."""
        return _jsonable(asdict(self))  # type: ignore[call-overload]


@dataclass(slots=True, frozen=True)
class ProfitAndLoss(_Report):
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    period_start: date
    period_end: date


@dataclass(slots=True, frozen=True)
class AccountBalance(_Report):
    account: str
    balance: Decimal


@dataclass(slots=True, frozen=True)
class BalanceSheet(_Report):
    assets: tuple[AccountBalance, ...]
    liabilities: tuple[AccountBalance, ...]
    equity: tuple[AccountBalance, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    as_of: date


@dataclass(slots=True, frozen=True)
class CashFlow(_Report):
    cash_inflows: Decimal
    cash_outflows: Decimal
    net_cash_flow: Decimal
    period_start: date
    period_end: date


@dataclass(slots=True, frozen=True)
class PeriodSummary(_Report):
    income: Decimal
    expenses: Decimal
    net_profit: Decimal
    cash_flow: Decimal | None = None


@dataclass(slots=True, frozen=True)
class BalanceSheetSummary(_Report):
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    net_worth: Decimal


@dataclass(slots=True, frozen=True)
class DashboardSummary(_Report):
    current_month: PeriodSummary
    year_to_date: PeriodSummary
    balance_sheet: BalanceSheetSummary
    generated_at: datetime


@dataclass(slots=True, frozen=True)
class ExpenseCategory(_Report):
    category: str
    amount: Decimal


class ReportingEngine:
    """Aggregates ledger entries of a single tenant into statements."""

    def __init__(self, session: Session, *, now_fn: Callable[[], datetime] | None = None) -> None:
        self._session = session
        self._now = now_fn or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def _check_window(start: date, end: date) -> None:
        if start > end:
            raise ValidationError(f"Report window start {start} is after end {end}")

    def _sum(self, column: Any, tenant_id: str, *criteria: Any) -> Decimal:
        statement = select(func.coalesce(func.sum(column), 0)).where(
            LedgerEntry.tenant_id == tenant_id, *criteria
        )
        return _money(self._session.scalar(statement))

    def profit_and_loss(self, tenant_id: str, start: date, end: date) -> ProfitAndLoss:
        self._check_window(start, end)
        in_window = LedgerEntry.occurred_at.between(start, end)
        total_income = self._sum(
            LedgerEntry.credit, tenant_id, LedgerEntry.account_type == AccountType.INCOME, in_window
        )
        total_expenses = self._sum(
            LedgerEntry.debit, tenant_id, LedgerEntry.account_type == AccountType.EXPENSE, in_window
        )
        return ProfitAndLoss(
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=total_income - total_expenses,
            period_start=start,
            period_end=end,
        )

    def _account_balances(self, tenant_id: str, account_type: AccountType, as_of: date) -> tuple[AccountBalance, ...]:
        statement = (
            select(
                LedgerEntry.account,
                func.coalesce(func.sum(LedgerEntry.debit), 0).label("debit"),
                func.coalesce(func.sum(LedgerEntry.credit), 0).label("credit"),
            )
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.account_type == account_type,
                LedgerEntry.occurred_at <= as_of,
            )
            .group_by(LedgerEntry.account)
            .order_by(LedgerEntry.account)
        )
        debit_normal = account_type == AccountType.ASSET
        balances = []
        for row in self._session.execute(statement):
            debit, credit = _money(row.debit), _money(row.credit)
            balance = debit - credit if debit_normal else credit - debit
            balances.append(AccountBalance(account=row.account, balance=balance))
        return tuple(balances)

    def balance_sheet(self, tenant_id: str, as_of: date) -> BalanceSheet:
        assets = self._account_balances(tenant_id, AccountType.ASSET, as_of)
        liabilities = self._account_balances(tenant_id, AccountType.LIABILITY, as_of)
        equity = self._account_balances(tenant_id, AccountType.EQUITY, as_of)
        return BalanceSheet(
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            total_assets=sum((item.balance for item in assets), Decimal("0.00")),
            total_liabilities=sum((item.balance for item in liabilities), Decimal("0.00")),
            total_equity=sum((item.balance for item in equity), Decimal("0.00")),
            as_of=as_of,
        )

    def cash_flow(self, tenant_id: str, start: date, end: date) -> CashFlow:
        self._check_window(start, end)
        criteria = (
            LedgerEntry.account.in_([account.name for account in LIQUID_ACCOUNTS]),
            LedgerEntry.account_type == AccountType.ASSET,
            LedgerEntry.occurred_at.between(start, end),
        )
        inflows = self._sum(LedgerEntry.debit, tenant_id, *criteria)
        outflows = self._sum(LedgerEntry.credit, tenant_id, *criteria)
        return CashFlow(
            cash_inflows=inflows,
            cash_outflows=outflows,
            net_cash_flow=inflows - outflows,
            period_start=start,
            period_end=end,
        )

    def dashboard_summary(self, tenant_id: str, *, now: datetime | None = None) -> DashboardSummary:
        now = now or self._now()
        today = now.date()

        monthly = self.profit_and_loss(tenant_id, month_start(today), today)
        yearly = self.profit_and_loss(tenant_id, year_start(today), today)
        monthly_cash = self.cash_flow(tenant_id, month_start(today), today)
        sheet = self.balance_sheet(tenant_id, today)

        return DashboardSummary(
            current_month=PeriodSummary(
                income=monthly.total_income,
                expenses=monthly.total_expenses,
                net_profit=monthly.net_profit,
                cash_flow=monthly_cash.net_cash_flow,
            ),
            year_to_date=PeriodSummary(
                income=yearly.total_income,
                expenses=yearly.total_expenses,
                net_profit=yearly.net_profit,
            ),
            balance_sheet=BalanceSheetSummary(
                total_assets=sheet.total_assets,
                total_liabilities=sheet.total_liabilities,
                total_equity=sheet.total_equity,
                net_worth=sheet.total_assets - sheet.total_liabilities,
            ),
            generated_at=now,
        )

    def top_expense_categories(
        self,
        tenant_id: str,
        *,
        month: date | None = None,
        limit: int = 5,
    ) -> list[ExpenseCategory]:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if month is None:
            end = self._now().date()
            start = month_start(end)
        else:
            start, end = month_start(month), month_end(month)

        total = func.coalesce(func.sum(LedgerEntry.debit), 0).label("total")
        statement = (
            select(LedgerEntry.account, total)
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.account_type == AccountType.EXPENSE,
                LedgerEntry.occurred_at.between(start, end),
            )
            .group_by(LedgerEntry.account)
            .order_by(total.desc(), LedgerEntry.account)
            .limit(limit)
        )
        return [
            ExpenseCategory(category=row.account, amount=_money(row.total))
            for row in self._session.execute(statement)
        ]


__all__ = [
    "AccountBalance",
    "BalanceSheet",
    "BalanceSheetSummary",
    "CashFlow",
    "DashboardSummary",
    "ExpenseCategory",
    "PeriodSummary",
    "ProfitAndLoss",
    "ReportingEngine",
    "month_end",
    "month_start",
    "year_start",
]
