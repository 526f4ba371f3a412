"""Observability utilities."""

from .metrics import (
    DASHBOARD_LOOKUPS_COUNTER,
    DUPLICATE_INGESTIONS_COUNTER,
    LEDGER_POSTING_FAILURES_COUNTER,
    LEDGER_POSTING_RETRIES_COUNTER,
    LEDGER_POSTINGS_COUNTER,
    QUEUE_DEPTH_GAUGE,
    REPORT_JOBS_CONSUMED_COUNTER,
    REPORT_JOBS_ENQUEUE_FAILURES_COUNTER,
    REPORT_RECOMPUTE_LATENCY_SECONDS,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    PrometheusMiddleware,
    metrics_router,
    report_queue_depth,
)
from .tracing import (
    current_traceparent,
    initialise_tracing,
    inject_traceparent,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    span_from_traceparent,
)

__all__ = [
    "DASHBOARD_LOOKUPS_COUNTER",
    "DUPLICATE_INGESTIONS_COUNTER",
    "LEDGER_POSTINGS_COUNTER",
    "LEDGER_POSTING_FAILURES_COUNTER",
    "LEDGER_POSTING_RETRIES_COUNTER",
    "PrometheusMiddleware",
    "QUEUE_DEPTH_GAUGE",
    "REPORT_JOBS_CONSUMED_COUNTER",
    "REPORT_JOBS_ENQUEUE_FAILURES_COUNTER",
    "REPORT_RECOMPUTE_LATENCY_SECONDS",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "current_traceparent",
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "report_queue_depth",
    "span_from_traceparent",
]
