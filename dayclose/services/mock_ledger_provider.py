from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from dayclose.services.ledger_provider import (
    CreditTransactionRecord,
    SupplierPaymentRecord,
    TransactionRecord,
)


class MockLedgerProvider:
    def __init__(self, anchor_date: date | None = None) -> None:
        # Credit ledger entries cover the anchor day and the two days before it.
        self.anchor_date = anchor_date
        self.sales_pattern = [
            ('cash', Decimal('42.50')),
            ('card', Decimal('118.00')),
            ('cash', Decimal('17.25')),
            ('credit', Decimal('65.00')),
            ('card', Decimal('230.75')),
            ('split', Decimal('90.00')),
            ('cash', Decimal('8.50')),
        ]
        self.credit_pattern = [
            ('payment', 'cash', Decimal('50.00')),
            ('payment', 'card', Decimal('75.00')),
            ('refund', 'cash', Decimal('12.00')),
        ]
        self.supplier_pattern = [
            ('cash', Decimal('120.00')),
            ('card', Decimal('340.00')),
        ]

    def _stamp(self, business_date: date, minutes: int) -> datetime:
        opening = datetime.combine(business_date, time(hour=9), tzinfo=timezone.utc)
        return opening + timedelta(minutes=minutes)

    def list_transactions(self, *, store_id: int, business_date: date) -> list[TransactionRecord]:
        # Vary volume by store and weekday so demo days do not all reconcile identically.
        repeat = 1 + (store_id + business_date.weekday()) % 3
        rows: list[TransactionRecord] = []
        for cycle in range(repeat):
            for idx, (method, total) in enumerate(self.sales_pattern):
                seq = cycle * len(self.sales_pattern) + idx
                rows.append(
                    TransactionRecord(
                        id=seq + 1,
                        store_id=store_id,
                        created_at=self._stamp(business_date, seq * 23),
                        payment_method=method,
                        total=total,
                    )
                )
        return rows

    def list_credit_transactions(self, *, store_id: int | None) -> list[CreditTransactionRecord]:
        anchor = self.anchor_date or datetime.now(tz=timezone.utc).date()
        rows: list[CreditTransactionRecord] = []
        for offset in range(3):
            day = anchor - timedelta(days=offset)
            for idx, (entry_type, method, amount) in enumerate(self.credit_pattern):
                rows.append(
                    CreditTransactionRecord(
                        id=offset * len(self.credit_pattern) + idx + 1,
                        created_at=self._stamp(day, 60 + idx * 45),
                        type=entry_type,
                        payment_method=method,
                        amount=amount,
                    )
                )
        return rows

    def list_supplier_payments(self, *, business_date: date) -> list[SupplierPaymentRecord]:
        return [
            SupplierPaymentRecord(
                id=idx + 1,
                payment_date=self._stamp(business_date, 120 + idx * 30),
                payment_method=method,
                amount=amount,
            )
            for idx, (method, amount) in enumerate(self.supplier_pattern)
        ]
