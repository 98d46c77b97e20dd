from __future__ import annotations

import copy
import unittest
from decimal import Decimal
from types import SimpleNamespace

from dayclose.services.aggregation_service import (
    CreditLedgerTotals,
    DailyAggregates,
    MethodTotal,
    SupplierPaymentTotals,
    TransactionTotals,
)
from dayclose.services.reconciliation_record import (
    DENOMINATIONS,
    OVERRIDE_FIELDS,
    Auto,
    Manual,
    apply_auto_population,
    auto_values_for,
    clear_override,
    refresh_auto_population,
    set_denomination_count,
    set_denomination_counts,
    set_override,
    start_reconciliation,
)


def _aggregates(
    *,
    cash: str = '250.00',
    card: str = '400.00',
    credit: str = '0.00',
    split: str = '0.00',
    credit_cash: str = '0.00',
    credit_card: str = '0.00',
    refunds: str = '0.00',
    supplier_cash: str = '0.00',
) -> DailyAggregates:
    return DailyAggregates(
        transactions=TransactionTotals(
            cash=MethodTotal(Decimal(cash), 5),
            card=MethodTotal(Decimal(card), 4),
            credit=MethodTotal(Decimal(credit), 0),
            split=MethodTotal(Decimal(split), 0),
        ),
        credit=CreditLedgerTotals(
            cash_payments=Decimal(credit_cash),
            card_payments=Decimal(credit_card),
            refunds=Decimal(refunds),
        ),
        supplier=SupplierPaymentTotals(cash=Decimal(supplier_cash), card=Decimal('99.00')),
    )


def _day(opening_cash='100.00', opening_bank_balance='1000.00'):
    return SimpleNamespace(
        opening_cash=Decimal(opening_cash) if opening_cash is not None else None,
        opening_bank_balance=Decimal(opening_bank_balance) if opening_bank_balance is not None else None,
    )


class StartReconciliationTests(unittest.TestCase):
    def test_every_override_field_starts_auto_with_the_aggregate(self) -> None:
        record = start_reconciliation(_day(), _aggregates())

        for name in OVERRIDE_FIELDS:
            self.assertFalse(record.is_manual(name), name)
        self.assertEqual(record.effective('cash_sales'), Decimal('250.00'))
        self.assertEqual(record.effective('card_sales'), Decimal('400.00'))
        self.assertEqual(record.effective('total_sales'), Decimal('650.00'))
        self.assertEqual(record.effective('opening_cash'), Decimal('100.00'))
        self.assertEqual(record.effective('opening_bank_balance'), Decimal('1000.00'))

    def test_missing_opening_balances_become_zero(self) -> None:
        record = start_reconciliation(_day(None, None), _aggregates())

        self.assertEqual(record.effective('opening_cash'), Decimal('0.00'))
        self.assertEqual(record.effective('opening_bank_balance'), Decimal('0.00'))

    def test_credit_and_supplier_use_cash_side_only_for_supplier(self) -> None:
        record = start_reconciliation(
            _day(),
            _aggregates(credit_cash='30.00', credit_card='20.00', refunds='5.00', supplier_cash='60.00'),
        )

        self.assertEqual(record.credit_payments_cash, Decimal('30.00'))
        self.assertEqual(record.credit_payments_card, Decimal('20.00'))
        self.assertEqual(record.credit_refunds_given, Decimal('5.00'))
        self.assertEqual(record.supplier_payments, Decimal('60.00'))

    def test_starts_with_every_denomination_at_zero(self) -> None:
        record = start_reconciliation(_day(), _aggregates())

        counts = record.counts_by_code()
        self.assertEqual(len(counts), 10)
        self.assertTrue(all(count == 0 for count in counts.values()))

    def test_unknown_field_name_raises_key_error(self) -> None:
        record = start_reconciliation(_day(), _aggregates())

        with self.assertRaises(KeyError):
            record.effective('owner_cash_deposits')
        with self.assertRaises(KeyError):
            set_override(record, 'bank_transfers', '1')


class OverrideTests(unittest.TestCase):
    def test_manual_value_survives_background_population(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        set_override(record, 'cash_sales', '275.00')

        apply_auto_population(record, auto_values_for(_day(), _aggregates(cash='300.00')))

        self.assertEqual(record.cash_sales, Manual(Decimal('275.00')))
        self.assertEqual(record.effective('cash_sales'), Decimal('275.00'))
        self.assertEqual(record.effective('total_sales'), Decimal('700.00'))

    def test_manual_zero_is_a_real_value(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        set_override(record, 'opening_cash', '0')

        apply_auto_population(record, auto_values_for(_day(), _aggregates()))

        self.assertTrue(record.is_manual('opening_cash'))
        self.assertEqual(record.effective('opening_cash'), Decimal('0'))

    def test_refresh_discards_manual_values(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        set_override(record, 'card_sales', '1.00')
        set_override(record, 'opening_bank_balance', '5.00')

        refresh_auto_population(record, auto_values_for(_day(), _aggregates(card='410.00')))

        self.assertEqual(record.card_sales, Auto(Decimal('410.00')))
        self.assertFalse(record.is_manual('opening_bank_balance'))
        self.assertEqual(record.effective('opening_bank_balance'), Decimal('1000.00'))

    def test_clear_override_falls_back_to_last_aggregate(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        set_override(record, 'split_sales', '12.00')

        clear_override(record, 'split_sales')

        self.assertEqual(record.split_sales, Auto(Decimal('0.00')))


class MovementPopulationTests(unittest.TestCase):
    def test_positive_aggregate_replaces_entered_amount(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        record.supplier_payments = Decimal('15.00')

        apply_auto_population(record, auto_values_for(_day(), _aggregates(supplier_cash='40.00')))

        self.assertEqual(record.supplier_payments, Decimal('40.00'))

    def test_zero_aggregate_keeps_entered_amount(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        record.credit_payments_cash = Decimal('15.00')

        apply_auto_population(record, auto_values_for(_day(), _aggregates()))

        self.assertEqual(record.credit_payments_cash, Decimal('15.00'))

    def test_refresh_forces_zero_aggregate(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        record.credit_refunds_given = Decimal('15.00')

        refresh_auto_population(record, auto_values_for(_day(), _aggregates()))

        self.assertEqual(record.credit_refunds_given, Decimal('0.00'))

    def test_second_refresh_with_same_values_changes_nothing(self) -> None:
        record = start_reconciliation(_day(), _aggregates())
        set_override(record, 'cash_sales', '999.00')
        record.supplier_payments = Decimal('15.00')
        values = auto_values_for(_day(), _aggregates(cash='300.00', credit_cash='30.00', supplier_cash='40.00'))

        refresh_auto_population(record, values)
        after_first = copy.deepcopy(record)
        refresh_auto_population(record, values)

        self.assertEqual(record, after_first)
        self.assertEqual(record.cash_sales, Auto(Decimal('300.00')))
        self.assertEqual(record.supplier_payments, Decimal('40.00'))


class DenominationCountTests(unittest.TestCase):
    def test_schedule_runs_from_largest_to_smallest_note(self) -> None:
        face_values = [item['face_value'] for item in DENOMINATIONS]

        self.assertEqual(face_values, sorted(face_values, reverse=True))
        self.assertEqual(len(set(face_values)), len(face_values))
        self.assertEqual(
            [line.code for line in start_reconciliation(_day(), _aggregates()).denomination_counts],
            [item['code'] for item in DENOMINATIONS],
        )

    def test_negative_counts_clamp_to_zero(self) -> None:
        record = start_reconciliation(_day(), _aggregates())

        set_denomination_count(record, 'QR_100', -3)

        self.assertEqual(record.counts_by_code()['QR_100'], 0)

    def test_unknown_codes_are_ignored(self) -> None:
        record = start_reconciliation(_day(), _aggregates())

        set_denomination_counts(record, {'QR_1000': 4, 'QR_5': 2})

        counts = record.counts_by_code()
        self.assertNotIn('QR_1000', counts)
        self.assertEqual(counts['QR_5'], 2)


if __name__ == '__main__':
    unittest.main()
