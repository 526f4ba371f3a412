"""Seed a demo tenant with a month of sample bookkeeping."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from finledger.core.config import get_settings
from finledger.db.session import engine, get_session
from finledger.models import Base, Tenant, TenantStatus, TransactionKind, TransactionSource
from finledger.services.classifier import TransactionRequest
from finledger.services.ledger import LedgerService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_TRANSACTIONS = [
    (TransactionKind.INCOME, "2500.00", "Consulting invoice #1001", None, "bank"),
    (TransactionKind.INCOME, "480.00", "Counter sales", None, "cash"),
    (TransactionKind.EXPENSE, "1200.00", "Office rent", None, "bank"),
    (TransactionKind.EXPENSE, "89.90", "Mobile phone bill", None, "bank"),
    (TransactionKind.EXPENSE, "42.50", "Taxi to client site", None, "cash"),
    (TransactionKind.TRANSFER, "300.00", "Cash deposit", None, "cash"),
]


def seed(session: Session) -> None:
    """Create the demo tenant and post sample transactions once."""

    settings = get_settings()
    tenant_id = settings.default_tenant_id

    tenant = session.get(Tenant, tenant_id)
    if tenant is not None:
        logger.info("Tenant %s already exists", tenant_id)
        return

    session.add(Tenant(id=tenant_id, name="Demo Tenant", status=TenantStatus.ACTIVE))
    session.commit()
    logger.info("Created tenant %s", tenant_id)

    service = LedgerService(session, settings=settings)
    today = datetime.now(timezone.utc).date()
    for index, (kind, amount, description, category, payment_method) in enumerate(DEMO_TRANSACTIONS, start=1):
        service.record_transaction(
            tenant_id=tenant_id,
            request=TransactionRequest(
                kind=kind,
                amount=Decimal(amount),
                description=description,
                category=category,
                payment_method=payment_method,
                occurred_at=date(today.year, today.month, min(index, today.day)),
                source=TransactionSource.MANUAL,
            ),
            actor="seed-script",
            notify=False,
        )
    logger.info("Posted %d demo transactions", len(DEMO_TRANSACTIONS))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_session() as session:
        seed(session)


if __name__ == "__main__":
    main()
