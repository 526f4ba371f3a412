from __future__ import annotations

import os
from collections.abc import Iterator
from threading import Lock

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_suite.db")
os.environ.setdefault("ENABLE_TRACING", "false")

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from finledger.api.deps import get_db_session, get_report_cache, get_report_job_queue
from finledger.main import app
from finledger.models import Base, Tenant, TenantStatus
from finledger.services.report_cache import RedisReportCache
from finledger.services.report_jobs import InMemoryReportJobQueue

TENANT_ID = "tenant-demo"


class InMemoryRedis:
    """Subset of the redis-py client used by the report cache."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._ttls: dict[str, int] = {}
        self._lock = Lock()
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    def get(self, key: str) -> str | None:
        self._check()
        with self._lock:
            return self._values.get(key)

    def setex(self, key: str, seconds: int, value: str) -> bool:
        self._check()
        with self._lock:
            self._values[key] = value
            self._ttls[key] = int(seconds)
        return True

    def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        with self._lock:
            for key in keys:
                removed += int(self._values.pop(key, None) is not None)
                self._ttls.pop(key, None)
        return removed

    def ttl(self, key: str) -> int:
        with self._lock:
            return self._ttls.get(key, -2)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)


DATABASE_URL = "sqlite+pysqlite:///./test_suite.db"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    tenant = Tenant(id=TENANT_ID, name="Demo Tenant", status=TenantStatus.ACTIVE)
    session.add(tenant)
    session.commit()

    yield session
    session.close()


@pytest.fixture()
def report_queue() -> InMemoryReportJobQueue:
    return InMemoryReportJobQueue()


@pytest.fixture()
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture()
def report_cache(redis_client: InMemoryRedis) -> RedisReportCache:
    return RedisReportCache(client=redis_client)


@pytest.fixture()
def tenant_headers() -> dict[str, str]:
    return {"X-Tenant-ID": TENANT_ID}


@pytest.fixture()
def client(
    db_session: Session,
    report_queue: InMemoryReportJobQueue,
    report_cache: RedisReportCache,
) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_report_job_queue] = lambda: report_queue
    app.dependency_overrides[get_report_cache] = lambda: report_cache

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
