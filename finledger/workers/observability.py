"""Tracing and metric bootstrap shared by the report worker loops."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Sequence

from opentelemetry.trace import Span

from finledger.core.config import Settings, get_settings
from finledger.obs import initialise_tracing, report_queue_depth, span_from_traceparent

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from finledger.services.report_jobs import ReportJob

logger = logging.getLogger(__name__)


def configure_worker(
    service_name: str,
    *,
    queues: Sequence[str] | None = None,
    settings: Settings | None = None,
) -> None:
    """Start tracing for ``service_name`` and publish zero depth for each queue it drains."""

    settings = settings or get_settings()
    if settings.enable_tracing:
        initialise_tracing(
            service_name=service_name,
            endpoint=settings.otel_exporter_endpoint,
            instrument_logging=False,
        )
    if settings.enable_metrics:
        for queue in queues or ():
            report_queue_depth(queue, 0)
    logger.info("worker observability configured", extra={"service": service_name})


@contextmanager
def worker_span(name: str, job: ReportJob | None = None) -> Iterator[Span]:
    """Open a span for one unit of worker work.

    When ``job`` is given the span continues the trace of the posting that
    enqueued it and is tagged with the job's tenant and report type.
    """

    if job is None:
        with span_from_traceparent(name, None) as span:
            yield span
        return
    with span_from_traceparent(
        name,
        job.traceparent,
        tenant_id=job.tenant_id,
        report_type=job.report_type.value,
        job_id=job.job_id,
    ) as span:
        yield span


__all__ = ["configure_worker", "worker_span"]
