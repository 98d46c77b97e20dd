from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from dayclose.models import CreditTransaction, SupplierPayment, Transaction
from dayclose.services.ledger_provider import (
    CreditTransactionRecord,
    SupplierPaymentRecord,
    TransactionRecord,
)


def _day_bounds(business_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(business_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class SqlLedgerProvider:
    """Reads POS, credit ledger and supplier payment rows owned by other services."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def list_transactions(self, *, store_id: int, business_date: date) -> list[TransactionRecord]:
        start, end = _day_bounds(business_date)
        with self.session_factory() as db:
            rows = db.execute(
                select(Transaction)
                .where(
                    Transaction.store_id == store_id,
                    Transaction.created_at >= start,
                    Transaction.created_at < end,
                )
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            ).scalars().all()
            return [
                TransactionRecord(
                    id=row.id,
                    store_id=row.store_id,
                    created_at=row.created_at,
                    payment_method=row.payment_method,
                    total=row.total,
                )
                for row in rows
            ]

    def list_credit_transactions(self, *, store_id: int | None) -> list[CreditTransactionRecord]:
        query = select(CreditTransaction).order_by(CreditTransaction.created_at.asc(), CreditTransaction.id.asc())
        if store_id:
            query = query.where(CreditTransaction.store_id == store_id)
        with self.session_factory() as db:
            return [
                CreditTransactionRecord(
                    id=row.id,
                    created_at=row.created_at,
                    type=row.type,
                    payment_method=row.payment_method,
                    amount=row.amount,
                )
                for row in db.execute(query).scalars().all()
            ]

    def list_supplier_payments(self, *, business_date: date) -> list[SupplierPaymentRecord]:
        start, end = _day_bounds(business_date)
        with self.session_factory() as db:
            rows = db.execute(
                select(SupplierPayment)
                .where(SupplierPayment.payment_date >= start, SupplierPayment.payment_date < end)
                .order_by(SupplierPayment.payment_date.asc(), SupplierPayment.id.asc())
            ).scalars().all()
            return [
                SupplierPaymentRecord(
                    id=row.id,
                    payment_date=row.payment_date,
                    payment_method=row.payment_method,
                    amount=row.amount,
                )
                for row in rows
            ]
