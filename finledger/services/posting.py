"""Derives balanced ledger entries for classified transactions."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from finledger.models import LedgerEntry, Transaction, TransactionKind
from finledger.services.accounts import SALES_REVENUE, Account, ChartOfAccounts
from finledger.services.errors import PostingAtomicityError

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(slots=True, frozen=True)
class PostingLine:
    """One debit or credit leg derived from a posting template."""

    account: Account
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass(slots=True, frozen=True)
class AccountPosition:
    """Last known ``(sequence, running_balance)`` of a tenant account."""

    sequence: int
    balance: Decimal


def ensure_balanced(lines: Iterable[PostingLine | LedgerEntry]) -> None:
    """Raise unless total debits equal total credits and every leg is one-sided."""

    total_debit = ZERO
    total_credit = ZERO
    for line in lines:
        debit = Decimal(line.debit)
        credit = Decimal(line.credit)
        if debit < 0 or credit < 0 or (debit == 0) == (credit == 0):
            raise PostingAtomicityError("Every ledger leg must carry exactly one positive side")
        total_debit += debit
        total_credit += credit
    if total_debit != total_credit:
        raise PostingAtomicityError(f"Unbalanced posting: debits {total_debit} != credits {total_credit}")


class PostingEngine:
    """Writes the ledger entries of a transaction with per-account running balances."""

    def __init__(self, chart: ChartOfAccounts | None = None) -> None:
        self._chart = chart or ChartOfAccounts.default()

    def lines_for(self, transaction: Transaction) -> list[PostingLine]:
        amount = Decimal(transaction.amount)
        kind = TransactionKind(transaction.kind)

        if kind == TransactionKind.INCOME:
            return [
                PostingLine(self._chart.payment_account(transaction.payment_method), debit=amount),
                PostingLine(SALES_REVENUE, credit=amount),
            ]
        if kind == TransactionKind.EXPENSE:
            return [
                PostingLine(self._chart.expense_account(transaction.category), debit=amount),
                PostingLine(self._chart.payment_account(transaction.payment_method), credit=amount),
            ]
        details = transaction.details or {}
        source, destination = self._chart.transfer_accounts(
            transaction.payment_method, details.get("destination_account")
        )
        return [
            PostingLine(destination, debit=amount),
            PostingLine(source, credit=amount),
        ]

    def last_position(self, session: Session, *, tenant_id: str, account: str) -> AccountPosition | None:
        statement = (
            select(LedgerEntry.sequence, LedgerEntry.running_balance)
            .where(LedgerEntry.tenant_id == tenant_id, LedgerEntry.account == account)
            .order_by(LedgerEntry.sequence.desc())
            .limit(1)
        )
        row = session.execute(statement).first()
        if row is None:
            return None
        return AccountPosition(sequence=row.sequence, balance=Decimal(row.running_balance))

    def post(self, session: Session, transaction: Transaction) -> list[LedgerEntry]:
        """Add the entries for ``transaction`` to the session and flush them.

        The caller owns the database transaction; a failure here must be
        followed by a rollback so that no leg becomes visible on its own.
        """

        lines = self.lines_for(transaction)
        ensure_balanced(lines)

        positions: dict[str, AccountPosition] = {}
        entries: list[LedgerEntry] = []
        for line in lines:
            position = positions.get(line.account.name)
            if position is None:
                position = self.last_position(
                    session, tenant_id=transaction.tenant_id, account=line.account.name
                ) or AccountPosition(sequence=0, balance=ZERO)
            position = AccountPosition(
                sequence=position.sequence + 1,
                balance=position.balance + line.debit - line.credit,
            )
            positions[line.account.name] = position

            entry = LedgerEntry(
                tenant_id=transaction.tenant_id,
                transaction_id=transaction.id,
                account=line.account.name,
                account_type=line.account.type,
                debit=line.debit,
                credit=line.credit,
                description=transaction.description,
                occurred_at=transaction.occurred_at,
                sequence=position.sequence,
                running_balance=position.balance,
            )
            session.add(entry)
            entries.append(entry)

        session.flush()
        logger.debug(
            "posted ledger entries",
            extra={"transaction_id": transaction.id, "entries": len(entries)},
        )
        return entries


def replay_running_balances(entries: Sequence[LedgerEntry]) -> list[Decimal]:
    """Recompute running balances for the entries of one account in sequence order."""

    balance = ZERO
    balances: list[Decimal] = []
    for entry in sorted(entries, key=lambda item: item.sequence):
        balance = balance + Decimal(entry.debit) - Decimal(entry.credit)
        balances.append(balance)
    return balances


__all__ = [
    "AccountPosition",
    "PostingEngine",
    "PostingLine",
    "ensure_balanced",
    "replay_running_balances",
]
