"""Configuration management for the ledger service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="FinLedger")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://finledger:finledger@db:5432/finledger")
    redis_url: str = Field(default="redis://redis:6379/0")

    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    report_jobs_topic: str = Field(default="report-recompute-jobs")
    kafka_max_block_ms: int = Field(default=2000)
    report_enqueue_timeout_seconds: float = Field(default=2.0)
    report_consumer_group: str = Field(default="report-cache-worker")
    report_worker_poll_interval_seconds: float = Field(default=1.0)
    report_refresh_interval_seconds: int = Field(default=900)

    report_cache_key_prefix: str = Field(default="reports")
    dashboard_cache_ttl_seconds: int = Field(default=3600)
    statement_cache_ttl_seconds: int = Field(default=86400)

    posting_max_attempts: int = Field(default=3, ge=1)
    strict_chart_of_accounts: bool = Field(default=False)
    extra_expense_accounts: list[str] = Field(default_factory=list)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    log_level: str = Field(default="INFO")
    logging_config_path: str | None = Field(default=None)

    tenant_header: str = Field(default="X-Tenant-ID")
    default_tenant_id: str = Field(default="tenant-demo")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
