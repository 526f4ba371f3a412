from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select
from sqlalchemy.exc import DataError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import TextClause

from finledger.core.config import Settings
from finledger.models import AuditLog, LedgerEntry, ReportType, Transaction, TransactionKind
from finledger.services.accounts import CASH, SALES_REVENUE
from finledger.services.classifier import TransactionRequest
from finledger.services.errors import PostingAtomicityError, TransactionNotFoundError, ValidationError
from finledger.services.ledger import LedgerService
from finledger.services.posting import PostingEngine, PostingLine
from finledger.services.report_jobs import InMemoryReportJobQueue
from finledger.services.reporting import ReportingEngine
from tests.conftest import TENANT_ID


def _count(session: Session, model: type) -> int:
    return session.scalar(select(func.count()).select_from(model))


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def _cash_entries(session: Session) -> list[LedgerEntry]:
    statement = (
        select(LedgerEntry)
        .where(LedgerEntry.tenant_id == TENANT_ID, LedgerEntry.account == "Cash")
        .order_by(LedgerEntry.sequence)
    )
    return list(session.scalars(statement))


def test_income_then_rent_expense_leaves_cash_at_700(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())

    service.record_transaction(
        tenant_id=TENANT_ID,
        request=TransactionRequest(kind="income", amount="1000", payment_method="cash"),
    )
    result = service.record_transaction(
        tenant_id=TENANT_ID,
        request=TransactionRequest(kind="expense", amount="300", payment_method="cash", category="Rent"),
    )

    accounts = {entry.account: entry for entry in result.entries}
    assert accounts["Rent"].debit == Decimal("300.00")
    assert accounts["Cash"].credit == Decimal("300.00")
    assert [entry.running_balance for entry in _cash_entries(db_session)] == [
        Decimal("1000.00"),
        Decimal("700.00"),
    ]


def test_posting_runs_under_a_write_lock(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    statements: list[str] = []
    original_execute = Session.execute

    def tracking_execute(self: Session, statement, *args, **kwargs):
        if isinstance(statement, TextClause):
            statements.append(str(statement))
        return original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(Session, "execute", tracking_execute)

    LedgerService(db_session, settings=Settings()).record_transaction(
        tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="10")
    )

    assert any("BEGIN IMMEDIATE" in statement for statement in statements)


def test_posting_writes_an_audit_record(db_session: Session) -> None:
    result = LedgerService(db_session, settings=Settings()).record_transaction(
        tenant_id=TENANT_ID,
        request=TransactionRequest(kind="income", amount="42"),
        actor="ops@example.com",
    )

    log = db_session.scalars(select(AuditLog)).one()
    assert log.action == "transaction.create"
    assert log.actor == "ops@example.com"
    assert log.resource_id == result.transaction.id
    assert log.payload["amount"] == "42.00"


def test_duplicate_reference_returns_existing_posting(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    request = TransactionRequest(kind="income", amount="500", reference="TXN123", source="upi")
    before = _sample("ledger_duplicate_ingestions_total", {"source": "upi"})

    first = service.record_transaction(tenant_id=TENANT_ID, request=request)
    second = service.record_transaction(tenant_id=TENANT_ID, request=request)

    assert second.duplicate is True
    assert second.transaction.id == first.transaction.id
    assert len(second.entries) == 2
    assert _count(db_session, Transaction) == 1
    assert _count(db_session, LedgerEntry) == 2
    assert _sample("ledger_duplicate_ingestions_total", {"source": "upi"}) == before + 1


def test_stale_running_balance_is_retried(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    service = LedgerService(db_session, settings=Settings(posting_max_attempts=3))
    service.record_transaction(
        tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="100", payment_method="cash")
    )

    original = PostingEngine.last_position
    calls = {"count": 0}

    def stale_once(self, session, *, tenant_id, account):  # type: ignore[no-untyped-def]
        calls["count"] += 1
        if calls["count"] == 1:
            # Simulates a concurrent writer having appended after our read.
            return None
        return original(self, session, tenant_id=tenant_id, account=account)

    monkeypatch.setattr(PostingEngine, "last_position", stale_once)
    retries_before = _sample("ledger_posting_retries_total")

    service.record_transaction(
        tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="50", payment_method="cash")
    )

    cash = _cash_entries(db_session)
    assert [entry.sequence for entry in cash] == [1, 2]
    assert [entry.running_balance for entry in cash] == [Decimal("100.00"), Decimal("150.00")]
    assert _count(db_session, Transaction) == 2
    assert _sample("ledger_posting_retries_total") == retries_before + 1


def test_exhausted_retries_raise_and_leave_no_partial_state(
    db_session: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = LedgerService(db_session, settings=Settings(posting_max_attempts=2))
    service.record_transaction(
        tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="100", payment_method="cash")
    )
    monkeypatch.setattr(PostingEngine, "last_position", lambda self, session, *, tenant_id, account: None)

    with pytest.raises(PostingAtomicityError):
        service.record_transaction(
            tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="50", payment_method="cash")
        )

    assert _count(db_session, Transaction) == 1
    assert _count(db_session, LedgerEntry) == 2
    assert _count(db_session, AuditLog) == 1


class _FailingEngine(PostingEngine):
    """Writes the first leg and then fails like a lost database connection."""

    def post(self, session, transaction):  # type: ignore[no-untyped-def]
        session.add(
            LedgerEntry(
                tenant_id=transaction.tenant_id,
                transaction_id=transaction.id,
                account="Cash",
                account_type=CASH.type,
                debit=transaction.amount,
                credit=Decimal("0"),
                description="",
                occurred_at=transaction.occurred_at,
                sequence=1,
                running_balance=transaction.amount,
            )
        )
        session.flush()
        raise DataError("INSERT INTO ledger_entries", {}, Exception("connection dropped"))


class _UnbalancedEngine(PostingEngine):
    def lines_for(self, transaction):  # type: ignore[no-untyped-def]
        return [PostingLine(CASH, debit=Decimal("10.00")), PostingLine(SALES_REVENUE, credit=Decimal("9.99"))]


@pytest.mark.parametrize("engine_cls", [_FailingEngine, _UnbalancedEngine])
def test_failed_posting_rolls_back_transaction_and_entries(db_session: Session, engine_cls: type) -> None:
    queue = InMemoryReportJobQueue()
    service = LedgerService(db_session, settings=Settings(), engine=engine_cls(), queue=queue)
    failures_before = _sample("ledger_posting_failures_total")

    with pytest.raises(PostingAtomicityError):
        service.record_transaction(tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="10"))

    assert _count(db_session, Transaction) == 0
    assert _count(db_session, LedgerEntry) == 0
    assert _count(db_session, AuditLog) == 0
    assert queue.list_jobs() == []
    assert _sample("ledger_posting_failures_total") == failures_before + 1


def test_validation_error_persists_nothing(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())

    with pytest.raises(ValidationError):
        service.record_transaction(tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="-1"))

    assert _count(db_session, Transaction) == 0


def test_posting_enqueues_dashboard_refresh(db_session: Session) -> None:
    queue = InMemoryReportJobQueue()
    service = LedgerService(db_session, settings=Settings(), queue=queue)

    service.record_transaction(tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="10"))
    service.record_transaction(
        tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="10"), notify=False
    )

    jobs = queue.drain()
    assert len(jobs) == 1
    assert jobs[0].tenant_id == TENANT_ID
    assert jobs[0].report_type == ReportType.DASHBOARD_SUMMARY
    assert jobs[0].reason == "transaction_posted"


class _BrokenQueue:
    def enqueue(self, job) -> None:  # type: ignore[no-untyped-def]
        raise ConnectionError("broker unreachable")


def test_queue_failure_does_not_fail_the_posting(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings(), queue=_BrokenQueue())
    before = _sample("report_jobs_enqueue_failures_total")

    result = service.record_transaction(tenant_id=TENANT_ID, request=TransactionRequest(kind="income", amount="10"))

    assert result.duplicate is False
    assert _count(db_session, Transaction) == 1
    assert _sample("report_jobs_enqueue_failures_total") == before + 1


def _record(service: LedgerService, **fields) -> Transaction:  # type: ignore[no-untyped-def]
    return service.record_transaction(tenant_id=TENANT_ID, request=TransactionRequest(**fields)).transaction


def test_list_transactions_filters_and_orders(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    _record(service, kind="income", amount="1", occurred_at=date(2024, 1, 5))
    _record(service, kind="income", amount="2", occurred_at=date(2024, 1, 9), source="upi", reference="U-1")
    _record(service, kind="income", amount="3", occurred_at=date(2024, 1, 7))

    everything = service.list_transactions(tenant_id=TENANT_ID)
    upi_only = service.list_transactions(tenant_id=TENANT_ID, source="upi")
    latest = service.list_transactions(tenant_id=TENANT_ID, limit=1)

    assert [item.occurred_at for item in everything] == [date(2024, 1, 9), date(2024, 1, 7), date(2024, 1, 5)]
    assert [item.reference for item in upi_only] == ["U-1"]
    assert len(latest) == 1 and len(latest[0].ledger_entries) == 2
    with pytest.raises(ValidationError):
        service.list_transactions(tenant_id=TENANT_ID, limit=0)


def test_get_transaction_is_scoped_to_tenant(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    transaction = _record(service, kind="income", amount="5")

    assert service.get_transaction(tenant_id=TENANT_ID, transaction_id=transaction.id).id == transaction.id
    with pytest.raises(TransactionNotFoundError):
        service.get_transaction(tenant_id="tenant-other", transaction_id=transaction.id)


def test_update_corrects_descriptive_fields_only(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    transaction = _record(service, kind="expense", amount="80", description="Cab", category="Travel")

    updated = service.update_transaction(
        tenant_id=TENANT_ID,
        transaction_id=transaction.id,
        changes={"description": "Cab to client", "category": " rent ", "metadata": {"note": "fixed"}},
        actor="ops@example.com",
    )

    assert updated.description == "Cab to client"
    assert updated.category == "Rent"
    assert updated.details == {"note": "fixed"}
    assert {entry.account for entry in updated.ledger_entries} == {"Travel", "Cash"}
    actions = [log.action for log in db_session.scalars(select(AuditLog).order_by(AuditLog.created_at))]
    assert "transaction.update" in actions

    with pytest.raises(ValidationError):
        service.update_transaction(tenant_id=TENANT_ID, transaction_id=transaction.id, changes={"amount": "1"})


def test_update_rejects_reference_already_ingested(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    _record(service, kind="income", amount="5", source="upi", reference="TXN1")
    other = _record(service, kind="income", amount="6", source="upi", reference="TXN2")

    with pytest.raises(ValidationError):
        service.update_transaction(tenant_id=TENANT_ID, transaction_id=other.id, changes={"reference": "TXN1"})


def test_delete_cascades_to_entries_and_requests_refresh(db_session: Session) -> None:
    queue = InMemoryReportJobQueue()
    service = LedgerService(db_session, settings=Settings(), queue=queue)
    transaction = _record(service, kind="income", amount="5")
    queue.clear()

    service.delete_transaction(tenant_id=TENANT_ID, transaction_id=transaction.id, actor="ops@example.com")

    assert _count(db_session, Transaction) == 0
    assert _count(db_session, LedgerEntry) == 0
    assert [job.reason for job in queue.drain()] == ["transaction_deleted"]
    assert db_session.scalars(select(AuditLog).where(AuditLog.action == "transaction.delete")).one()
    with pytest.raises(TransactionNotFoundError):
        service.delete_transaction(tenant_id=TENANT_ID, transaction_id=transaction.id)


def test_delete_keeps_later_running_balances_while_statements_reaggregate(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    first = _record(service, kind="income", amount="100", payment_method="cash", occurred_at=date(2024, 6, 1))
    _record(service, kind="income", amount="50", payment_method="cash", occurred_at=date(2024, 6, 2))

    service.delete_transaction(tenant_id=TENANT_ID, transaction_id=first.id)
    _record(service, kind="income", amount="10", payment_method="cash", occurred_at=date(2024, 6, 3))

    entries = _cash_entries(db_session)
    assert [entry.sequence for entry in entries] == [2, 3]
    assert [entry.running_balance for entry in entries] == [Decimal("150.00"), Decimal("160.00")]
    sheet = ReportingEngine(db_session).balance_sheet(TENANT_ID, date(2024, 6, 30))
    assert sheet.total_assets == Decimal("60.00")


def test_transfer_moves_funds_between_liquid_accounts(db_session: Session) -> None:
    service = LedgerService(db_session, settings=Settings())
    _record(service, kind="income", amount="400", payment_method="cash")

    result = service.record_transaction(
        tenant_id=TENANT_ID,
        request=TransactionRequest(kind=TransactionKind.TRANSFER, amount="150", payment_method="cash"),
    )

    balances = {entry.account: entry.running_balance for entry in result.entries}
    assert balances == {"Cash": Decimal("250.00"), "Bank Account": Decimal("150.00")}
