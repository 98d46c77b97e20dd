from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dayclose.services.reconciliation_record import ReconciliationRecord

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


@dataclass(frozen=True)
class CashCountLine:
    code: str
    label: str
    face_value: Decimal
    count: int
    line_amount: Decimal


@dataclass(frozen=True)
class CashCountResult:
    lines: list[CashCountLine]
    denominations_total: Decimal
    misc_amount: Decimal
    actual_cash_count: Decimal


@dataclass(frozen=True)
class CashPosition:
    opening_cash: Decimal
    cash_sales: Decimal
    inflows: Decimal
    outflows: Decimal
    expected_cash: Decimal
    actual_cash_count: Decimal
    cash_variance: Decimal


@dataclass(frozen=True)
class BankPosition:
    opening_bank_balance: Decimal
    card_sales: Decimal
    net_owner_bank_movement: Decimal
    expected_bank: Decimal
    actual_bank_balance: Decimal
    bank_variance: Decimal
    card_reconciliation_total: Decimal
    card_swipe_variance: Decimal


def count_cash(record: ReconciliationRecord) -> CashCountResult:
    lines: list[CashCountLine] = []
    total = ZERO
    for line in record.denomination_counts:
        count = max(0, int(line.count))
        amount = (line.face_value * Decimal(count)).quantize(CENT)
        total += amount
        lines.append(
            CashCountLine(
                code=line.code,
                label=line.label,
                face_value=line.face_value,
                count=count,
                line_amount=amount,
            )
        )
    misc = record.cash_misc_amount
    return CashCountResult(
        lines=lines,
        denominations_total=total.quantize(CENT),
        misc_amount=misc,
        actual_cash_count=(total + misc).quantize(CENT),
    )


def compute_cash_position(record: ReconciliationRecord, *, actual_cash_count: Decimal) -> CashPosition:
    opening_cash = record.effective('opening_cash')
    cash_sales = record.effective('cash_sales')
    inflows = record.owner_cash_deposits + record.credit_payments_cash
    # bank_transfers is signed, so a transfer from the bank adds back to the drawer here.
    outflows = (
        record.owner_cash_withdrawals
        + record.supplier_payments
        + record.expense_payments
        + record.credit_refunds_given
        + record.bank_transfers
    )
    expected = (opening_cash + cash_sales + inflows - outflows).quantize(CENT)
    return CashPosition(
        opening_cash=opening_cash,
        cash_sales=cash_sales,
        inflows=inflows.quantize(CENT),
        outflows=outflows.quantize(CENT),
        expected_cash=expected,
        actual_cash_count=actual_cash_count,
        cash_variance=(actual_cash_count - expected).quantize(CENT),
    )


def compute_bank_position(record: ReconciliationRecord) -> BankPosition:
    opening_bank = record.effective('opening_bank_balance')
    card_sales = record.effective('card_sales')
    net_owner = record.owner_bank_deposits - record.owner_bank_withdrawals
    expected = (
        opening_bank
        + card_sales
        + record.credit_payments_card
        + net_owner
        + record.bank_transfers
        - record.bank_withdrawals
    ).quantize(CENT)

    # Terminal batch check; independent of the bank balance variance.
    card_total = (card_sales + record.credit_payments_card).quantize(CENT)
    return BankPosition(
        opening_bank_balance=opening_bank,
        card_sales=card_sales,
        net_owner_bank_movement=net_owner.quantize(CENT),
        expected_bank=expected,
        actual_bank_balance=record.actual_bank_balance,
        bank_variance=(record.actual_bank_balance - expected).quantize(CENT),
        card_reconciliation_total=card_total,
        card_swipe_variance=(record.pos_card_swipe_amount - card_total).quantize(CENT),
    )
