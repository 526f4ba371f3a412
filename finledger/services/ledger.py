"""Ledger orchestration: record, correct and remove transactions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from finledger.core.config import Settings, get_settings
from finledger.db.transactions import serializable_transaction
from finledger.models import AuditLog, LedgerEntry, Transaction, TransactionKind
from finledger.obs import (
    DUPLICATE_INGESTIONS_COUNTER,
    LEDGER_POSTING_FAILURES_COUNTER,
    LEDGER_POSTING_RETRIES_COUNTER,
    LEDGER_POSTINGS_COUNTER,
    REPORT_JOBS_ENQUEUE_FAILURES_COUNTER,
    current_traceparent,
)
from finledger.services.accounts import ChartOfAccounts
from finledger.services.classifier import TransactionClassifier, TransactionRequest
from finledger.services.errors import (
    DuplicateTransactionError,
    PostingAtomicityError,
    TransactionNotFoundError,
    ValidationError,
)
from finledger.services.posting import PostingEngine
from finledger.services.report_jobs import NullReportJobQueue, ReportJob, ReportJobQueue

logger = logging.getLogger(__name__)

CORRECTABLE_FIELDS = frozenset({"description", "category", "reference", "vendor", "metadata"})


@dataclass(slots=True, frozen=True)
class PostingResult:
    """A recorded transaction and the ledger entries posted for it."""

    transaction: Transaction
    entries: tuple[LedgerEntry, ...]
    duplicate: bool = False


class LedgerService:
    """Runs classification and posting as one atomic unit per transaction."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        classifier: TransactionClassifier | None = None,
        engine: PostingEngine | None = None,
        queue: ReportJobQueue | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        chart = ChartOfAccounts.default(self._settings)
        self._chart = chart
        self._classifier = classifier or TransactionClassifier(chart)
        self._engine = engine or PostingEngine(chart)
        self._queue = queue or NullReportJobQueue()

    def record_transaction(
        self,
        *,
        tenant_id: str,
        request: TransactionRequest,
        actor: str | None = None,
        notify: bool = True,
    ) -> PostingResult:
        """Classify ``request``, post its entries and commit both together.

        A conflicting concurrent append on the same account surfaces as an
        integrity or serialization failure; the whole unit is rolled back and
        replayed, dedup check included, up to ``posting_max_attempts`` times.
        """

        attempts = self._settings.posting_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                result, kind, source = self._post_once(tenant_id, request, actor)
            except (IntegrityError, OperationalError) as exc:
                if attempt >= attempts:
                    LEDGER_POSTING_FAILURES_COUNTER.inc()
                    logger.error(
                        "posting conflict retries exhausted",
                        extra={"tenant_id": tenant_id, "attempts": attempts},
                    )
                    raise PostingAtomicityError("Ledger posting could not be committed") from exc
                LEDGER_POSTING_RETRIES_COUNTER.inc()
                logger.warning(
                    "posting conflict, retrying",
                    extra={"tenant_id": tenant_id, "attempt": attempt},
                )
                continue
            except PostingAtomicityError:
                LEDGER_POSTING_FAILURES_COUNTER.inc()
                raise
            except SQLAlchemyError as exc:
                LEDGER_POSTING_FAILURES_COUNTER.inc()
                raise PostingAtomicityError("Ledger posting could not be committed") from exc

            if result.duplicate:
                DUPLICATE_INGESTIONS_COUNTER.labels(source=source).inc()
                logger.info("duplicate transaction skipped", extra={"tenant_id": tenant_id, "source": source})
                return result

            LEDGER_POSTINGS_COUNTER.labels(kind=kind, source=source).inc()
            logger.info(
                "transaction posted",
                extra={"tenant_id": tenant_id, "kind": kind, "source": source},
            )
            if notify:
                self.request_dashboard_refresh(tenant_id, reason="transaction_posted")
            return result

        raise PostingAtomicityError("Ledger posting could not be committed")  # pragma: no cover

    def _post_once(
        self, tenant_id: str, request: TransactionRequest, actor: str | None
    ) -> tuple[PostingResult, str, str]:
        with serializable_transaction(self._session):
            try:
                transaction = self._classifier.classify(self._session, tenant_id=tenant_id, request=request)
            except DuplicateTransactionError as exc:
                existing = exc.existing
                result = PostingResult(
                    transaction=existing,
                    entries=tuple(existing.ledger_entries),
                    duplicate=True,
                )
                return result, TransactionKind(existing.kind).value, existing.source

            entries = self._engine.post(self._session, transaction)
            self._record_audit(
                transaction=transaction,
                action="transaction.create",
                actor=actor,
                payload={
                    "kind": TransactionKind(transaction.kind).value,
                    "amount": f"{Decimal(transaction.amount):.2f}",
                    "source": transaction.source,
                    "reference": transaction.reference,
                    "entries": len(entries),
                },
            )
            kind = TransactionKind(transaction.kind).value
            source = transaction.source
        return PostingResult(transaction=transaction, entries=tuple(entries)), kind, source

    def get_transaction(self, *, tenant_id: str, transaction_id: str) -> Transaction:
        statement = (
            select(Transaction)
            .options(selectinload(Transaction.ledger_entries))
            .where(Transaction.tenant_id == tenant_id, Transaction.id == transaction_id)
        )
        transaction = self._session.scalars(statement).first()
        if transaction is None:
            raise TransactionNotFoundError(
                f"Transaction '{transaction_id}' was not found for tenant '{tenant_id}'"
            )
        return transaction

    def list_transactions(
        self,
        *,
        tenant_id: str,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        if limit is not None and limit < 1:
            raise ValidationError("limit must be at least 1")
        statement = (
            select(Transaction)
            .options(selectinload(Transaction.ledger_entries))
            .where(Transaction.tenant_id == tenant_id)
            .order_by(Transaction.occurred_at.desc(), Transaction.created_at.desc())
        )
        if source is not None:
            statement = statement.where(Transaction.source == source)
        if limit is not None:
            statement = statement.limit(limit)
        return list(self._session.scalars(statement))

    def update_transaction(
        self,
        *,
        tenant_id: str,
        transaction_id: str,
        changes: dict[str, Any],
        actor: str | None = None,
    ) -> Transaction:
        """Correct descriptive fields of a transaction; its ledger entries are untouched.

        A category correction relabels the transaction only. Its entries stay on
        the expense account they were posted to, so statements keep reporting
        the original account until the transaction is deleted and re-recorded.
        """

        unknown = set(changes) - CORRECTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be corrected: {', '.join(sorted(unknown))}")

        transaction = self.get_transaction(tenant_id=tenant_id, transaction_id=transaction_id)
        applied: dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name == "metadata":
                transaction.details = dict(value) if value else None
            elif field_name == "category" and transaction.kind == TransactionKind.EXPENSE:
                transaction.category = self._chart.expense_account(value).name
            elif field_name == "reference":
                self._check_reference(transaction, value)
                transaction.reference = value
            elif field_name == "description":
                transaction.description = value or ""
            else:
                setattr(transaction, field_name, value)
            applied[field_name] = value

        self._record_audit(
            transaction=transaction,
            action="transaction.update",
            actor=actor,
            payload={"changes": applied},
        )
        self._session.commit()
        self._session.refresh(transaction)
        return transaction

    def _check_reference(self, transaction: Transaction, reference: str | None) -> None:
        existing = self._classifier.find_duplicate(
            self._session,
            tenant_id=transaction.tenant_id,
            source=transaction.source,
            reference=reference,
        )
        if existing is not None and existing.id != transaction.id:
            raise ValidationError(
                f"Reference '{reference}' is already recorded for source '{transaction.source}'"
            )

    def delete_transaction(self, *, tenant_id: str, transaction_id: str, actor: str | None = None) -> None:
        """Remove a transaction and its ledger entries.

        Later entries on the same accounts keep their stored running balances
        and sequences. Statements are aggregated from the remaining entries, so
        they reflect the removal immediately.
        """

        transaction = self.get_transaction(tenant_id=tenant_id, transaction_id=transaction_id)
        self._record_audit(
            transaction=transaction,
            action="transaction.delete",
            actor=actor,
            payload={
                "kind": TransactionKind(transaction.kind).value,
                "amount": f"{Decimal(transaction.amount):.2f}",
                "entries": len(transaction.ledger_entries),
            },
        )
        self._session.delete(transaction)
        self._session.commit()
        logger.info("transaction deleted", extra={"tenant_id": tenant_id, "transaction_id": transaction_id})
        self.request_dashboard_refresh(tenant_id, reason="transaction_deleted")

    def request_dashboard_refresh(self, tenant_id: str, *, reason: str) -> ReportJob:
        """Queue a dashboard recompute; a queue failure never fails the caller."""

        job = ReportJob.dashboard(tenant_id, reason=reason, traceparent=current_traceparent())
        try:
            self._queue.enqueue(job)
        except Exception:
            REPORT_JOBS_ENQUEUE_FAILURES_COUNTER.inc()
            logger.exception(
                "failed to enqueue report job",
                extra={"tenant_id": tenant_id, "job_id": job.job_id},
            )
        return job

    def _record_audit(
        self,
        *,
        transaction: Transaction,
        action: str,
        actor: str | None,
        payload: dict[str, Any],
    ) -> None:
        log = AuditLog(
            tenant_id=transaction.tenant_id,
            actor=actor,
            action=action,
            resource_type="Transaction",
            resource_id=transaction.id,
            payload=payload,
        )
        self._session.add(log)


__all__ = ["CORRECTABLE_FIELDS", "LedgerService", "PostingResult"]
