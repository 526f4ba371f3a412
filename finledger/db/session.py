"""Engine and session factory for the ledger database."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from finledger.core.config import Settings, get_settings
from finledger.obs import instrument_sqlalchemy_engine


def build_engine(settings: Settings) -> Engine:
    """Create the engine for ``settings.database_url``.

    SQLite connections are shared between the API threadpool and the worker
    threads, so the same-thread check is disabled for them.
    """

    options: dict[str, Any] = {"pool_pre_ping": True}
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    built = create_engine(settings.database_url, **options)
    if settings.enable_tracing:
        instrument_sqlalchemy_engine(built)
    return built


engine = build_engine(get_settings())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session() -> Iterator[Session]:
    """Session scope that commits on success and rolls back on any error."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["SessionLocal", "build_engine", "engine", "get_session"]
