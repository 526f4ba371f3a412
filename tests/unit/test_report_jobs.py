from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from kafka.errors import KafkaTimeoutError
from prometheus_client import REGISTRY
from sqlalchemy.orm import Session

from finledger.core.config import Settings
from finledger.models import ReportType, Transaction
from finledger.services import report_jobs
from finledger.services.classifier import TransactionRequest
from finledger.services.ledger import LedgerService
from finledger.services.report_cache import RedisReportCache, ReportCacheService
from finledger.services.report_jobs import (
    InMemoryReportJobQueue,
    KafkaReportJobQueue,
    NullReportJobQueue,
    ReportJob,
    ReportJobConsumer,
)
from tests.conftest import TENANT_ID, TestingSessionLocal


class FakeProducer:
    def __init__(self) -> None:
        self.sent: list[dict[str, object]] = []
        self.flushed = 0
        self.flush_timeouts: list[float | None] = []

    def send(self, topic: str, *, key: str, value: dict[str, object]) -> None:
        self.sent.append({"topic": topic, "key": key, "value": value})

    def flush(self, timeout: float | None = None) -> None:
        self.flushed += 1
        self.flush_timeouts.append(timeout)


class FakeConsumer:
    def __init__(self, values: list[object]) -> None:
        self._batches = [{"report-recompute-jobs-0": [SimpleNamespace(value=value) for value in values]}]
        self.commits = 0

    def poll(self, timeout_ms: int) -> dict[str, list[SimpleNamespace]]:
        return self._batches.pop(0) if self._batches else {}

    def commit(self) -> None:
        self.commits += 1


def _outcome(outcome: str) -> float:
    return REGISTRY.get_sample_value("report_jobs_consumed_total", {"outcome": outcome}) or 0.0


def test_kafka_queue_publishes_json_keyed_by_tenant() -> None:
    producer = FakeProducer()
    queue = KafkaReportJobQueue(settings=Settings(), producer_factory=lambda: producer)
    job = ReportJob.dashboard(TENANT_ID, reason="transaction_posted")

    queue.enqueue(job)

    assert producer.sent == [
        {"topic": "report-recompute-jobs", "key": TENANT_ID, "value": job.model_dump(mode="json")}
    ]
    assert producer.flushed == 1
    json.dumps(producer.sent[0]["value"])


def test_kafka_queue_bounds_broker_waits(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[dict[str, object]] = []
    producer = FakeProducer()

    def fake_kafka_producer(**options: object) -> FakeProducer:
        created.append(options)
        return producer

    monkeypatch.setattr(report_jobs, "KafkaProducer", fake_kafka_producer)
    settings = Settings(kafka_max_block_ms=500, report_enqueue_timeout_seconds=0.5)

    KafkaReportJobQueue(settings=settings).enqueue(ReportJob.dashboard(TENANT_ID, reason="transaction_posted"))

    assert created[0]["max_block_ms"] == 500
    assert producer.flush_timeouts == [0.5]


def test_unreachable_broker_does_not_fail_the_posting(db_session: Session) -> None:
    class TimingOutProducer(FakeProducer):
        def flush(self, timeout: float | None = None) -> None:
            raise KafkaTimeoutError("Timeout waiting for future")

    queue = KafkaReportJobQueue(settings=Settings(), producer_factory=TimingOutProducer)
    service = LedgerService(db_session, settings=Settings(), queue=queue)

    result = service.record_transaction(
        tenant_id=TENANT_ID,
        request=TransactionRequest(kind="income", amount="25", payment_method="cash"),
    )

    assert len(result.entries) == 2
    assert db_session.get(Transaction, result.transaction.id) is not None


def test_in_memory_queue_drains_in_order() -> None:
    queue = InMemoryReportJobQueue()
    first = ReportJob.dashboard("a", reason="x")
    second = ReportJob.dashboard("b", reason="y")

    queue.enqueue(first)
    queue.extend([second])

    assert queue.drain() == [first, second]
    assert queue.list_jobs() == []


def test_null_queue_accepts_jobs() -> None:
    NullReportJobQueue().enqueue(ReportJob.dashboard(TENANT_ID, reason="noop"))


def test_consumer_isolates_each_job(db_session: Session, report_cache: RedisReportCache) -> None:
    values = [
        ReportJob.dashboard(TENANT_ID, reason="transaction_posted").model_dump(mode="json"),
        {"tenant_id": None, "report_type": "dashboard_summary"},
        ReportJob(tenant_id=TENANT_ID, report_type=ReportType.CASH_FLOW).model_dump(mode="json"),
    ]
    fake = FakeConsumer(values)
    consumer = ReportJobConsumer(
        session_factory=TestingSessionLocal,
        service_factory=lambda session: ReportCacheService(session, cache=report_cache, settings=Settings()),
        settings=Settings(),
        consumer_factory=lambda: fake,
    )
    before = {outcome: _outcome(outcome) for outcome in ("processed", "invalid", "failed")}

    assert consumer.poll_once() == 3
    assert consumer.poll_once() == 0

    assert fake.commits == 1
    assert _outcome("processed") == before["processed"] + 1
    assert _outcome("invalid") == before["invalid"] + 1
    assert _outcome("failed") == before["failed"] + 1
    assert report_cache.get(f"reports:{TENANT_ID}:dashboard_summary:current") is not None
