"""Report recompute jobs and the Kafka queue that carries them."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timezone
from threading import Lock
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from kafka import KafkaConsumer, KafkaProducer
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from finledger.core.config import Settings, get_settings
from finledger.models import ReportType
from finledger.obs import REPORT_JOBS_CONSUMED_COUNTER
from finledger.workers.observability import worker_span

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from finledger.services.report_cache import ReportCacheService

logger = logging.getLogger(__name__)


class ReportJob(BaseModel):
    """Request to recompute and republish one cached report."""

    job_id: str = Field(default_factory=lambda: uuid4().hex)
    tenant_id: str
    report_type: ReportType
    period_start: date | None = None
    period_end: date | None = None
    as_of: date | None = None
    reason: str = "on_demand"
    traceparent: str | None = None
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def dashboard(cls, tenant_id: str, *, reason: str, traceparent: str | None = None) -> "ReportJob":
        return cls(
            tenant_id=tenant_id,
            report_type=ReportType.DASHBOARD_SUMMARY,
            reason=reason,
            traceparent=traceparent,
        )


class ReportJobQueue(Protocol):
    """Capability used by the posting path to request report recomputes."""

    def enqueue(self, job: ReportJob) -> None:
        """Hand ``job`` to the recompute worker without waiting for it."""


class NullReportJobQueue:
    """Queue that drops every job; for callers that never cache reports."""

    def enqueue(self, job: ReportJob) -> None:
        logger.debug("dropping report job", extra={"job_id": job.job_id})


class InMemoryReportJobQueue:
    """Thread-safe in-memory queue used for tests and local development."""

    def __init__(self) -> None:
        self._jobs: list[ReportJob] = []
        self._lock = Lock()

    def enqueue(self, job: ReportJob) -> None:
        with self._lock:
            self._jobs.append(job)

    def extend(self, jobs: Iterable[ReportJob]) -> None:
        with self._lock:
            self._jobs.extend(jobs)

    def drain(self) -> list[ReportJob]:
        with self._lock:
            jobs = list(self._jobs)
            self._jobs.clear()
            return jobs

    def list_jobs(self) -> list[ReportJob]:
        with self._lock:
            return list(self._jobs)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


class KafkaReportJobQueue:
    """Publishes report jobs to Kafka."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
            key_serializer=lambda value: value.encode("utf-8"),
            max_block_ms=self._settings.kafka_max_block_ms,
        )

    def _get_producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = self._producer_factory()
        return self._producer

    def enqueue(self, job: ReportJob) -> None:
        payload = job.model_dump(mode="json")
        producer = self._get_producer()
        logger.debug(
            "publishing report job",
            extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "report_type": job.report_type.value},
        )
        # Keyed by tenant so one tenant's jobs stay ordered on a single partition.
        producer.send(self._settings.report_jobs_topic, key=job.tenant_id, value=payload)
        # Bounded so an unreachable broker cannot stall the posting that enqueued the job.
        producer.flush(timeout=self._settings.report_enqueue_timeout_seconds)


class ReportJobConsumer:
    """Consumes report jobs and recomputes the cached reports they name."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        service_factory: Callable[[Session], "ReportCacheService"],
        settings: Settings | None = None,
        consumer_factory: Callable[[], KafkaConsumer] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._service_factory = service_factory
        self._settings = settings or get_settings()
        self._consumer_factory = consumer_factory or self._default_factory
        self._consumer: KafkaConsumer | None = None

    def _default_factory(self) -> KafkaConsumer:
        return KafkaConsumer(
            self._settings.report_jobs_topic,
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_deserializer=lambda data: json.loads(data.decode("utf-8")),
            auto_offset_reset="earliest",
            enable_auto_commit=False,
            group_id=self._settings.report_consumer_group,
        )

    def _get_consumer(self) -> KafkaConsumer:
        if self._consumer is None:
            self._consumer = self._consumer_factory()
        return self._consumer

    def poll_once(self) -> int:
        """Process one batch and return how many records it contained.

        A job that fails is logged and dropped; the next trigger or scheduled
        refresh recomputes the report again, so offsets are always committed.
        """

        consumer = self._get_consumer()
        records = consumer.poll(timeout_ms=1000)
        if not records:
            return 0

        received = 0
        session = self._session_factory()
        try:
            service = self._service_factory(session)
            for partition_records in records.values():
                for record in partition_records:
                    received += 1
                    self._process(session, service, record.value)
        finally:
            session.close()
        consumer.commit()
        return received

    def _process(self, session: Session, service: "ReportCacheService", value: object) -> None:
        try:
            job = ReportJob.model_validate(value)
        except ValueError:
            REPORT_JOBS_CONSUMED_COUNTER.labels(outcome="invalid").inc()
            logger.exception("discarding malformed report job", extra={"body": value})
            return

        try:
            with worker_span("report_jobs.recompute", job):
                service.recompute(job)
            session.commit()
        except Exception:
            session.rollback()
            REPORT_JOBS_CONSUMED_COUNTER.labels(outcome="failed").inc()
            logger.exception(
                "report recompute failed",
                extra={"job_id": job.job_id, "tenant_id": job.tenant_id, "report_type": job.report_type.value},
            )
        else:
            REPORT_JOBS_CONSUMED_COUNTER.labels(outcome="processed").inc()


__all__ = [
    "InMemoryReportJobQueue",
    "KafkaReportJobQueue",
    "NullReportJobQueue",
    "ReportJob",
    "ReportJobConsumer",
    "ReportJobQueue",
]
