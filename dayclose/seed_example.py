from __future__ import annotations

import argparse
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from dayclose.models import Base, CreditTransaction, Store, SupplierPayment, Transaction
from dayclose.services.mock_ledger_provider import MockLedgerProvider


def seed_demo_data(db: Session, *, business_date: date, store_name: str = 'Downtown') -> tuple[Store, int]:
    """Create a demo store and copy one day of mock ledger rows into the ledger tables.

    Ledger rows are only written when the store has no sales for that day yet,
    so running the seed twice leaves the day's totals unchanged.
    """
    store = db.execute(select(Store).where(Store.name == store_name)).scalar_one_or_none()
    if not store:
        store = Store(name=store_name, active=True)
        db.add(store)
        db.flush()

    provider = MockLedgerProvider(anchor_date=business_date)
    sales = provider.list_transactions(store_id=store.id, business_date=business_date)
    start = sales[0].created_at if sales else None
    already_seeded = start is not None and db.execute(
        select(Transaction.id).where(Transaction.store_id == store.id, Transaction.created_at == start).limit(1)
    ).scalar_one_or_none()
    if already_seeded:
        return store, 0

    rows: list = [
        Transaction(
            store_id=store.id,
            created_at=sale.created_at,
            payment_method=sale.payment_method,
            total=sale.total,
        )
        for sale in sales
    ]
    rows.extend(
        CreditTransaction(
            store_id=store.id,
            created_at=entry.created_at,
            type=entry.type,
            payment_method=entry.payment_method,
            amount=entry.amount,
        )
        for entry in provider.list_credit_transactions(store_id=store.id)
        if entry.created_at.date() == business_date
    )
    rows.extend(
        SupplierPayment(payment_date=payment.payment_date, payment_method=payment.payment_method, amount=payment.amount)
        for payment in provider.list_supplier_payments(business_date=business_date)
    )
    db.add_all(rows)
    db.flush()
    return store, len(rows)


def main() -> None:
    parser = argparse.ArgumentParser(description='Seed a demo store and one day of ledger data.')
    parser.add_argument('--date', dest='business_date', default=None, help='Business date (YYYY-MM-DD). Defaults to today.')
    parser.add_argument('--store-name', default='Downtown')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before seeding.')
    args = parser.parse_args()

    from dayclose.db import SessionLocal, engine
    from dayclose.services.day_operation_service import today_local

    if args.create_tables:
        Base.metadata.create_all(engine)

    business_date = date.fromisoformat(args.business_date) if args.business_date else today_local()
    with SessionLocal() as db:
        store, inserted = seed_demo_data(db, business_date=business_date, store_name=args.store_name)
        db.commit()
    print(f'Seed complete: store={store.name} (id={store.id}), ledger_rows={inserted}, date={business_date.isoformat()}')


if __name__ == '__main__':
    main()
