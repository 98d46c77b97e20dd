from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from dayclose.models import CreditTransactionType, PaymentMethod
from dayclose.services.ledger_provider import (
    CreditTransactionRecord,
    LedgerProvider,
    SupplierPaymentRecord,
    TransactionRecord,
)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


@dataclass(frozen=True)
class MethodTotal:
    amount: Decimal = ZERO
    count: int = 0


@dataclass(frozen=True)
class TransactionTotals:
    cash: MethodTotal = field(default_factory=MethodTotal)
    card: MethodTotal = field(default_factory=MethodTotal)
    credit: MethodTotal = field(default_factory=MethodTotal)
    split: MethodTotal = field(default_factory=MethodTotal)

    @property
    def total_sales(self) -> Decimal:
        return (self.cash.amount + self.card.amount + self.credit.amount + self.split.amount).quantize(CENT)

    @property
    def total_transactions(self) -> int:
        return self.cash.count + self.card.count + self.credit.count + self.split.count


@dataclass(frozen=True)
class CreditLedgerTotals:
    cash_payments: Decimal = ZERO
    card_payments: Decimal = ZERO
    refunds: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (self.cash_payments + self.card_payments).quantize(CENT)

    @property
    def net_movement(self) -> Decimal:
        return (self.cash_payments + self.card_payments - self.refunds).quantize(CENT)


@dataclass(frozen=True)
class SupplierPaymentTotals:
    cash: Decimal = ZERO
    card: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (self.cash + self.card).quantize(CENT)


@dataclass(frozen=True)
class DailyAggregates:
    transactions: TransactionTotals = field(default_factory=TransactionTotals)
    credit: CreditLedgerTotals = field(default_factory=CreditLedgerTotals)
    supplier: SupplierPaymentTotals = field(default_factory=SupplierPaymentTotals)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def _amount(value: Decimal | None) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def summarize_transactions(transactions: list[TransactionRecord]) -> TransactionTotals:
    amounts = {method: ZERO for method in PaymentMethod}
    counts = {method: 0 for method in PaymentMethod}
    for row in transactions:
        try:
            method = PaymentMethod(row.payment_method)
        except ValueError:
            continue
        amounts[method] += _amount(row.total)
        counts[method] += 1

    return TransactionTotals(
        **{
            method.value: MethodTotal(amount=amounts[method].quantize(CENT), count=counts[method])
            for method in PaymentMethod
        }
    )


def summarize_credit_ledger(entries: list[CreditTransactionRecord], *, business_date: date) -> CreditLedgerTotals:
    cash_payments = ZERO
    card_payments = ZERO
    refunds = ZERO
    for entry in entries:
        if _utc_date(entry.created_at) != business_date:
            continue
        if entry.type == CreditTransactionType.REFUND.value:
            # Refunds count regardless of the method they were paid out with.
            refunds += _amount(entry.amount)
        elif entry.type == CreditTransactionType.PAYMENT.value:
            if entry.payment_method == PaymentMethod.CASH.value:
                cash_payments += _amount(entry.amount)
            elif entry.payment_method == PaymentMethod.CARD.value:
                card_payments += _amount(entry.amount)

    return CreditLedgerTotals(
        cash_payments=cash_payments.quantize(CENT),
        card_payments=card_payments.quantize(CENT),
        refunds=refunds.quantize(CENT),
    )


def summarize_supplier_payments(payments: list[SupplierPaymentRecord], *, business_date: date) -> SupplierPaymentTotals:
    cash = ZERO
    card = ZERO
    for payment in payments:
        if _utc_date(payment.payment_date) != business_date:
            continue
        if payment.payment_method == PaymentMethod.CASH.value:
            cash += _amount(payment.amount)
        elif payment.payment_method == PaymentMethod.CARD.value:
            card += _amount(payment.amount)
    return SupplierPaymentTotals(cash=cash.quantize(CENT), card=card.quantize(CENT))


def collect_daily_aggregates(provider: LedgerProvider, *, store_id: int, business_date: date) -> DailyAggregates:
    transactions = provider.list_transactions(store_id=store_id, business_date=business_date)
    credit_entries = provider.list_credit_transactions(store_id=store_id)
    supplier_payments = provider.list_supplier_payments(business_date=business_date)
    return DailyAggregates(
        transactions=summarize_transactions(transactions),
        credit=summarize_credit_ledger(credit_entries, business_date=business_date),
        supplier=summarize_supplier_payments(supplier_payments, business_date=business_date),
    )
