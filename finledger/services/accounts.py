"""Chart of accounts used when deriving postings."""
from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from finledger.core.config import Settings, get_settings
from finledger.models import AccountType
from finledger.services.errors import ValidationError

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class Account:
    """A named ledger account and its classification."""

    name: str
    type: AccountType


CASH = Account("Cash", AccountType.ASSET)
BANK_ACCOUNT = Account("Bank Account", AccountType.ASSET)
SALES_REVENUE = Account("Sales Revenue", AccountType.INCOME)
GENERAL_EXPENSE = Account("General Expense", AccountType.EXPENSE)

LIQUID_ACCOUNTS: tuple[Account, ...] = (CASH, BANK_ACCOUNT)

DEFAULT_EXPENSE_ACCOUNTS: tuple[str, ...] = (
    "Utilities",
    "Office Supplies",
    "Travel",
    "Salary",
    "Rent",
    GENERAL_EXPENSE.name,
)


def normalize_account_name(name: str) -> str:
    return _WHITESPACE.sub(" ", name).strip()


class ChartOfAccounts:
    """Enumerated set of accounts a posting may touch.

    Lookups ignore case and repeated whitespace so that ``"rent "`` and
    ``"Rent"`` land on the same balance.
    """

    def __init__(self, accounts: Iterable[Account], *, strict: bool = False) -> None:
        self._accounts: dict[str, Account] = {}
        self._strict = strict
        for account in accounts:
            self._accounts[self._key(account.name)] = Account(normalize_account_name(account.name), account.type)

    @classmethod
    def default(cls, settings: Settings | None = None) -> "ChartOfAccounts":
        settings = settings or get_settings()
        expense_names = [*DEFAULT_EXPENSE_ACCOUNTS, *settings.extra_expense_accounts]
        accounts = [
            *LIQUID_ACCOUNTS,
            SALES_REVENUE,
            *(Account(name, AccountType.EXPENSE) for name in expense_names),
        ]
        return cls(accounts, strict=settings.strict_chart_of_accounts)

    @staticmethod
    def _key(name: str) -> str:
        return normalize_account_name(name).casefold()

    def lookup(self, name: str) -> Account | None:
        return self._accounts.get(self._key(name))

    def accounts(self, account_type: AccountType | None = None) -> list[Account]:
        return [
            account
            for account in self._accounts.values()
            if account_type is None or account.type == account_type
        ]

    def payment_account(self, payment_method: str | None) -> Account:
        """Cash when paid in cash, the bank account for every other method."""

        if (payment_method or "").strip().lower() == "cash":
            return CASH
        return BANK_ACCOUNT

    def expense_account(self, category: str | None) -> Account:
        if not category or not normalize_account_name(category):
            return GENERAL_EXPENSE
        account = self.lookup(category)
        if account is not None:
            if account.type != AccountType.EXPENSE:
                raise ValidationError(f"Account '{account.name}' is not an expense account")
            return account
        if self._strict:
            raise ValidationError(f"Unknown expense account '{category}'")
        return Account(normalize_account_name(category), AccountType.EXPENSE)

    def transfer_accounts(self, payment_method: str | None, destination: str | None) -> tuple[Account, Account]:
        """Return ``(source, destination)`` for a transfer between asset accounts."""

        source = self.payment_account(payment_method)
        if destination:
            target = self.lookup(destination)
            if target is None or target.type != AccountType.ASSET:
                raise ValidationError(f"Transfer destination '{destination}' is not an asset account")
        else:
            target = BANK_ACCOUNT if source == CASH else CASH
        if target == source:
            raise ValidationError("Transfer source and destination accounts must differ")
        return source, target


__all__ = [
    "Account",
    "BANK_ACCOUNT",
    "CASH",
    "ChartOfAccounts",
    "DEFAULT_EXPENSE_ACCOUNTS",
    "GENERAL_EXPENSE",
    "LIQUID_ACCOUNTS",
    "SALES_REVENUE",
    "normalize_account_name",
]
