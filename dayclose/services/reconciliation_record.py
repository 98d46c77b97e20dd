"""Editable end-of-day reconciliation record.

The record is what a cashier works on between opening the close screen and
pressing Close. It holds the physical counts, manually entered movements, and
seven override fields that start out mirroring the day's aggregates.

Each override field is either ``Auto(value)``, meaning it still tracks the
aggregate it was populated from, or ``Manual(value)``, meaning someone typed a
number over it. Background population only ever touches ``Auto`` fields; an
explicit refresh is the only way back from ``Manual``. ``Manual(Decimal('0'))``
is a real entry and is never mistaken for "not set".
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Protocol

from dayclose.services.aggregation_service import DailyAggregates

ZERO = Decimal('0.00')

DENOMINATIONS: list[dict] = [
    {'code': 'QR_500', 'label': 'QR 500', 'face_value': Decimal('500.00')},
    {'code': 'QR_200', 'label': 'QR 200', 'face_value': Decimal('200.00')},
    {'code': 'QR_100', 'label': 'QR 100', 'face_value': Decimal('100.00')},
    {'code': 'QR_50', 'label': 'QR 50', 'face_value': Decimal('50.00')},
    {'code': 'QR_20', 'label': 'QR 20', 'face_value': Decimal('20.00')},
    {'code': 'QR_10', 'label': 'QR 10', 'face_value': Decimal('10.00')},
    {'code': 'QR_5', 'label': 'QR 5', 'face_value': Decimal('5.00')},
    {'code': 'QR_1', 'label': 'QR 1', 'face_value': Decimal('1.00')},
    {'code': 'DH_50', 'label': '50 Dirhams', 'face_value': Decimal('0.50')},
    {'code': 'DH_25', 'label': '25 Dirhams', 'face_value': Decimal('0.25')},
]

OVERRIDE_FIELDS: tuple[str, ...] = (
    'total_sales',
    'cash_sales',
    'card_sales',
    'credit_sales',
    'split_sales',
    'opening_cash',
    'opening_bank_balance',
)


@dataclass(frozen=True)
class Auto:
    value: Decimal = ZERO
    is_manual = False


@dataclass(frozen=True)
class Manual:
    value: Decimal
    is_manual = True


Override = Auto | Manual


@dataclass
class DenominationCount:
    code: str
    label: str
    face_value: Decimal
    count: int = 0


def _empty_counts() -> list[DenominationCount]:
    return [
        DenominationCount(code=item['code'], label=item['label'], face_value=item['face_value'])
        for item in DENOMINATIONS
    ]


class OpeningBalances(Protocol):
    opening_cash: Decimal | None
    opening_bank_balance: Decimal | None


@dataclass(frozen=True)
class AutoValues:
    total_sales: Decimal = ZERO
    cash_sales: Decimal = ZERO
    card_sales: Decimal = ZERO
    credit_sales: Decimal = ZERO
    split_sales: Decimal = ZERO
    opening_cash: Decimal = ZERO
    opening_bank_balance: Decimal = ZERO
    credit_payments_cash: Decimal = ZERO
    credit_payments_card: Decimal = ZERO
    credit_refunds_given: Decimal = ZERO
    supplier_payments: Decimal = ZERO


@dataclass
class ReconciliationRecord:
    denomination_counts: list[DenominationCount] = field(default_factory=_empty_counts)
    cash_misc_amount: Decimal = ZERO
    card_misc_amount: Decimal = ZERO

    owner_cash_deposits: Decimal = ZERO
    owner_cash_withdrawals: Decimal = ZERO
    owner_bank_deposits: Decimal = ZERO
    owner_bank_withdrawals: Decimal = ZERO

    credit_payments_cash: Decimal = ZERO
    credit_payments_card: Decimal = ZERO
    credit_refunds_given: Decimal = ZERO

    expense_payments: Decimal = ZERO
    supplier_payments: Decimal = ZERO
    # Signed: positive moved cash into the bank, negative pulled cash out of it.
    bank_transfers: Decimal = ZERO

    actual_bank_balance: Decimal = ZERO
    pos_card_swipe_amount: Decimal = ZERO
    bank_withdrawals: Decimal = ZERO

    total_sales: Override = field(default_factory=Auto)
    cash_sales: Override = field(default_factory=Auto)
    card_sales: Override = field(default_factory=Auto)
    credit_sales: Override = field(default_factory=Auto)
    split_sales: Override = field(default_factory=Auto)
    opening_cash: Override = field(default_factory=Auto)
    opening_bank_balance: Override = field(default_factory=Auto)

    misc_notes: str = ''
    reconciliation_notes: str = ''

    last_auto: AutoValues = field(default_factory=AutoValues)

    def effective(self, name: str) -> Decimal:
        if name not in OVERRIDE_FIELDS:
            raise KeyError(name)
        return getattr(self, name).value

    def is_manual(self, name: str) -> bool:
        if name not in OVERRIDE_FIELDS:
            raise KeyError(name)
        return getattr(self, name).is_manual

    def counts_by_code(self) -> dict[str, int]:
        return {line.code: line.count for line in self.denomination_counts}


def _to_decimal(value) -> Decimal:
    if value is None or value == '':
        return ZERO
    return Decimal(str(value))


def auto_values_for(day_operation: OpeningBalances, aggregates: DailyAggregates) -> AutoValues:
    sales = aggregates.transactions
    return AutoValues(
        total_sales=sales.total_sales,
        cash_sales=sales.cash.amount,
        card_sales=sales.card.amount,
        credit_sales=sales.credit.amount,
        split_sales=sales.split.amount,
        opening_cash=_to_decimal(day_operation.opening_cash),
        opening_bank_balance=_to_decimal(day_operation.opening_bank_balance),
        credit_payments_cash=aggregates.credit.cash_payments,
        credit_payments_card=aggregates.credit.card_payments,
        credit_refunds_given=aggregates.credit.refunds,
        supplier_payments=aggregates.supplier.cash,
    )


def _populate_movements(record: ReconciliationRecord, values: AutoValues, *, force: bool) -> None:
    for name in ('credit_payments_cash', 'credit_payments_card', 'credit_refunds_given', 'supplier_payments'):
        auto = getattr(values, name)
        if force or auto > 0 or getattr(record, name) == 0:
            setattr(record, name, auto)


def apply_auto_population(record: ReconciliationRecord, values: AutoValues) -> ReconciliationRecord:
    for name in OVERRIDE_FIELDS:
        if not getattr(record, name).is_manual:
            setattr(record, name, Auto(getattr(values, name)))
    _populate_movements(record, values, force=False)
    record.last_auto = values
    return record


def refresh_auto_population(record: ReconciliationRecord, values: AutoValues) -> ReconciliationRecord:
    for name in OVERRIDE_FIELDS:
        setattr(record, name, Auto(getattr(values, name)))
    _populate_movements(record, values, force=True)
    record.last_auto = values
    return record


def start_reconciliation(day_operation: OpeningBalances, aggregates: DailyAggregates) -> ReconciliationRecord:
    return apply_auto_population(ReconciliationRecord(), auto_values_for(day_operation, aggregates))


def set_override(record: ReconciliationRecord, name: str, value) -> ReconciliationRecord:
    if name not in OVERRIDE_FIELDS:
        raise KeyError(name)
    setattr(record, name, Manual(_to_decimal(value)))
    return record


def clear_override(record: ReconciliationRecord, name: str) -> ReconciliationRecord:
    if name not in OVERRIDE_FIELDS:
        raise KeyError(name)
    setattr(record, name, Auto(getattr(record.last_auto, name)))
    return record


def set_denomination_count(record: ReconciliationRecord, code: str, count: int) -> ReconciliationRecord:
    for idx, line in enumerate(record.denomination_counts):
        if line.code == code:
            record.denomination_counts[idx] = replace(line, count=max(0, int(count)))
            break
    return record


def set_denomination_counts(record: ReconciliationRecord, counts_by_code: dict[str, int]) -> ReconciliationRecord:
    for code, count in counts_by_code.items():
        set_denomination_count(record, code, count)
    return record
