from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    store_id: int
    created_at: datetime
    payment_method: str
    total: Decimal


@dataclass(frozen=True)
class CreditTransactionRecord:
    id: int
    created_at: datetime
    type: str
    payment_method: str
    amount: Decimal


@dataclass(frozen=True)
class SupplierPaymentRecord:
    id: int
    payment_date: datetime
    payment_method: str
    amount: Decimal


class LedgerProvider(Protocol):
    def list_transactions(self, *, store_id: int, business_date: date) -> list[TransactionRecord]: ...

    # Not date-filtered; the credit aggregator narrows to the trading date.
    def list_credit_transactions(self, *, store_id: int | None) -> list[CreditTransactionRecord]: ...

    def list_supplier_payments(self, *, business_date: date) -> list[SupplierPaymentRecord]: ...
