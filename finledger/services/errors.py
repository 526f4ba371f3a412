"""Error taxonomy shared by the ledger services."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from finledger.models import Transaction


class LedgerError(RuntimeError):
    """Base class for ledger service errors."""


class ValidationError(LedgerError):
    """Raised when a business event is rejected before anything is persisted."""


class DuplicateTransactionError(LedgerError):
    """Raised when a machine-ingested event was already recorded.

    Not a failure: callers receive the previously stored transaction through
    ``existing`` and must not post it again.
    """

    def __init__(self, existing: "Transaction") -> None:
        super().__init__(
            f"Transaction '{existing.reference}' from source '{existing.source}' was already recorded"
        )
        self.existing = existing


class PostingAtomicityError(LedgerError):
    """Raised when the entry set of a transaction could not be committed as a whole."""


class ReportRecomputeError(LedgerError):
    """Raised when a report recompute job cannot be completed."""


class TransactionNotFoundError(LedgerError):
    """Raised when a transaction identifier is missing or not in scope."""


__all__ = [
    "DuplicateTransactionError",
    "LedgerError",
    "PostingAtomicityError",
    "ReportRecomputeError",
    "TransactionNotFoundError",
    "ValidationError",
]
