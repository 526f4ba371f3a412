"""Translation of ledger errors into HTTP responses."""
from __future__ import annotations

from fastapi import HTTPException, status

from finledger.services.errors import (
    LedgerError,
    PostingAtomicityError,
    TransactionNotFoundError,
    ValidationError,
)


def to_http_exception(exc: LedgerError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, TransactionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PostingAtomicityError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Transaction could not be posted",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


__all__ = ["to_http_exception"]
