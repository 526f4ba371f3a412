from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from finledger.core.config import Settings
from finledger.models import Tenant
from finledger.services.classifier import TransactionRequest
from finledger.services.errors import ValidationError
from finledger.services.ledger import LedgerService
from finledger.services.reporting import AccountBalance, ExpenseCategory, ReportingEngine, month_end
from tests.conftest import TENANT_ID

NOW = datetime(2024, 6, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def ledger(db_session: Session) -> Session:
    db_session.add(Tenant(id="tenant-other", name="Other Tenant"))
    db_session.commit()

    service = LedgerService(db_session, settings=Settings())
    postings = [
        (TENANT_ID, "income", "1000", "cash", None, date(2024, 6, 3)),
        (TENANT_ID, "expense", "300", "cash", "Rent", date(2024, 6, 10)),
        (TENANT_ID, "income", "200", "bank", None, date(2024, 2, 15)),
        (TENANT_ID, "expense", "50", "bank", "Travel", date(2024, 5, 1)),
        ("tenant-other", "income", "999", "cash", None, date(2024, 6, 4)),
    ]
    for tenant_id, kind, amount, method, category, occurred_at in postings:
        service.record_transaction(
            tenant_id=tenant_id,
            request=TransactionRequest(
                kind=kind,
                amount=amount,
                payment_method=method,
                category=category,
                occurred_at=occurred_at,
            ),
        )
    return db_session


def test_profit_and_loss_for_the_month(ledger: Session) -> None:
    report = ReportingEngine(ledger).profit_and_loss(TENANT_ID, date(2024, 6, 1), date(2024, 6, 20))

    assert report.total_income == Decimal("1000.00")
    assert report.total_expenses == Decimal("300.00")
    assert report.net_profit == Decimal("700.00")


def test_balance_sheet_as_of_now(ledger: Session) -> None:
    report = ReportingEngine(ledger).balance_sheet(TENANT_ID, date(2024, 6, 20))

    assert report.assets == (
        AccountBalance(account="Bank Account", balance=Decimal("150.00")),
        AccountBalance(account="Cash", balance=Decimal("700.00")),
    )
    assert report.total_assets == Decimal("850.00")
    assert report.liabilities == ()
    assert report.total_liabilities == Decimal("0.00")


def test_balance_sheet_excludes_entries_after_as_of(ledger: Session) -> None:
    report = ReportingEngine(ledger).balance_sheet(TENANT_ID, date(2024, 6, 5))

    balances = {item.account: item.balance for item in report.assets}
    assert balances == {"Bank Account": Decimal("150.00"), "Cash": Decimal("1000.00")}


def test_cash_flow_covers_liquid_accounts(ledger: Session) -> None:
    report = ReportingEngine(ledger).cash_flow(TENANT_ID, date(2024, 1, 1), date(2024, 6, 20))

    assert report.cash_inflows == Decimal("1200.00")
    assert report.cash_outflows == Decimal("350.00")
    assert report.net_cash_flow == Decimal("850.00")


def test_reports_are_deterministic(ledger: Session) -> None:
    engine = ReportingEngine(ledger)
    window = (TENANT_ID, date(2024, 1, 1), date(2024, 6, 30))

    assert engine.profit_and_loss(*window) == engine.profit_and_loss(*window)
    assert engine.cash_flow(*window) == engine.cash_flow(*window)
    assert engine.balance_sheet(TENANT_ID, date(2024, 6, 30)) == engine.balance_sheet(TENANT_ID, date(2024, 6, 30))


def test_dashboard_is_composed_of_its_parts(ledger: Session) -> None:
    engine = ReportingEngine(ledger, now_fn=lambda: NOW)

    summary = engine.dashboard_summary(TENANT_ID)
    month = engine.profit_and_loss(TENANT_ID, date(2024, 6, 1), date(2024, 6, 20))
    year = engine.profit_and_loss(TENANT_ID, date(2024, 1, 1), date(2024, 6, 20))

    assert summary.current_month.net_profit == month.net_profit == Decimal("700.00")
    assert summary.year_to_date.net_profit == year.net_profit == Decimal("850.00")
    assert summary.current_month.cash_flow == Decimal("700.00")
    assert summary.balance_sheet.total_assets == Decimal("850.00")
    assert summary.balance_sheet.net_worth == Decimal("850.00")
    assert summary.generated_at == NOW


def test_dashboard_payload_is_json_safe(ledger: Session) -> None:
    payload = ReportingEngine(ledger, now_fn=lambda: NOW).dashboard_summary(TENANT_ID).to_dict()

    assert payload["current_month"]["income"] == "1000.00"
    assert payload["year_to_date"]["cash_flow"] is None
    assert payload["generated_at"] == NOW.isoformat()


def test_reports_never_mix_tenants(ledger: Session) -> None:
    engine = ReportingEngine(ledger)

    other = engine.profit_and_loss("tenant-other", date(2024, 1, 1), date(2024, 12, 31))
    unknown = engine.profit_and_loss("tenant-unknown", date(2024, 1, 1), date(2024, 12, 31))

    assert other.total_income == Decimal("999.00")
    assert other.total_expenses == Decimal("0.00")
    assert unknown.total_income == Decimal("0.00")


def test_top_expense_categories_by_month(ledger: Session) -> None:
    engine = ReportingEngine(ledger, now_fn=lambda: NOW)

    assert engine.top_expense_categories(TENANT_ID) == [ExpenseCategory(category="Rent", amount=Decimal("300.00"))]
    assert engine.top_expense_categories(TENANT_ID, month=date(2024, 5, 15)) == [
        ExpenseCategory(category="Travel", amount=Decimal("50.00"))
    ]
    with pytest.raises(ValidationError):
        engine.top_expense_categories(TENANT_ID, limit=0)


def test_top_expense_categories_orders_and_limits(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    for category, amount in (("Rent", "500"), ("Travel", "80"), ("Utilities", "120"), ("Rent", "100")):
        service.record_transaction(
            tenant_id=TENANT_ID,
            request=TransactionRequest(kind="expense", amount=amount, category=category, occurred_at=date(2024, 3, 4)),
        )

    top = ReportingEngine(db_session).top_expense_categories(TENANT_ID, month=date(2024, 3, 1), limit=2)

    assert [(item.category, item.amount) for item in top] == [
        ("Rent", Decimal("600.00")),
        ("Utilities", Decimal("120.00")),
    ]


def test_inverted_window_is_rejected(db_session: Session) -> None:
    with pytest.raises(ValidationError):
        ReportingEngine(db_session).profit_and_loss(TENANT_ID, date(2024, 6, 30), date(2024, 6, 1))


def test_month_end_handles_december() -> None:
    assert month_end(date(2023, 12, 5)) == date(2023, 12, 31)
    assert month_end(date(2024, 2, 10)) == date(2024, 2, 29)
