"""Transaction isolation helpers."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm import Session


@contextmanager
def serializable_transaction(session: Session) -> Iterator[None]:
    """Run the enclosed work under SERIALIZABLE isolation and commit it.

    SQLite has no isolation levels, so a write lock is taken up front with
    ``BEGIN IMMEDIATE`` instead. Any exception rolls the whole unit back.
    """

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    if bind.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    else:
        session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise


__all__ = ["serializable_transaction"]
