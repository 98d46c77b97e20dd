from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dayclose.models import VarianceSeverity
from dayclose.services.aggregation_service import DailyAggregates
from dayclose.services.reconciliation_math_service import (
    BankPosition,
    CashCountResult,
    CashPosition,
    compute_bank_position,
    compute_cash_position,
    count_cash,
)
from dayclose.services.reconciliation_record import ReconciliationRecord
from dayclose.services.tab_validation_service import TabFlags, evaluate_tabs
from dayclose.services.variance_service import (
    PerformanceMetrics,
    VarianceAnalysis,
    analyze_variance,
    compute_performance_metrics,
)

CENT = Decimal('0.01')


@dataclass(frozen=True)
class EffectiveSales:
    total_sales: Decimal
    cash_sales: Decimal
    card_sales: Decimal
    credit_sales: Decimal
    split_sales: Decimal
    manual_fields: tuple[str, ...]


@dataclass(frozen=True)
class ReconciliationSummary:
    effective_sales: EffectiveSales
    opening_cash: Decimal
    opening_bank_balance: Decimal
    cash_count: CashCountResult
    cash: CashPosition
    bank: BankPosition
    variance: VarianceAnalysis
    performance: PerformanceMetrics
    net_credit_movement: Decimal
    tab_flags: TabFlags

    @property
    def expected_cash(self) -> Decimal:
        return self.cash.expected_cash

    @property
    def actual_cash_count(self) -> Decimal:
        return self.cash_count.actual_cash_count

    @property
    def cash_variance(self) -> Decimal:
        return self.cash.cash_variance

    @property
    def expected_bank(self) -> Decimal:
        return self.bank.expected_bank

    @property
    def actual_bank_balance(self) -> Decimal:
        return self.bank.actual_bank_balance

    @property
    def bank_variance(self) -> Decimal:
        return self.bank.bank_variance

    @property
    def card_swipe_variance(self) -> Decimal:
        return self.bank.card_swipe_variance

    @property
    def severity(self) -> VarianceSeverity:
        return self.variance.severity

    @property
    def insights(self) -> list[str]:
        return self.variance.insights

    @property
    def recommendations(self) -> list[str]:
        return self.variance.recommendations


def effective_sales(record: ReconciliationRecord) -> EffectiveSales:
    names = ('total_sales', 'cash_sales', 'card_sales', 'credit_sales', 'split_sales')
    return EffectiveSales(
        **{name: record.effective(name) for name in names},
        manual_fields=tuple(name for name in names if record.is_manual(name)),
    )


def build_reconciliation_summary(
    record: ReconciliationRecord,
    aggregates: DailyAggregates,
    *,
    trading_hours: int = 8,
) -> ReconciliationSummary:
    sales = effective_sales(record)
    cash_count = count_cash(record)
    cash = compute_cash_position(record, actual_cash_count=cash_count.actual_cash_count)
    bank = compute_bank_position(record)

    total_transactions = aggregates.transactions.total_transactions
    variance = analyze_variance(
        cash_variance=cash.cash_variance,
        bank_variance=bank.bank_variance,
        total_sales=sales.total_sales,
        total_transactions=total_transactions,
    )
    performance = compute_performance_metrics(
        total_sales=sales.total_sales,
        total_transactions=total_transactions,
        trading_hours=trading_hours,
    )
    tab_flags = evaluate_tabs(
        actual_cash_count=cash_count.actual_cash_count,
        cash_variance=cash.cash_variance,
        actual_bank_balance=bank.actual_bank_balance,
        opening_bank_balance=bank.opening_bank_balance,
        bank_variance=bank.bank_variance,
        severity=variance.severity,
    )
    net_credit = record.credit_payments_cash + record.credit_payments_card - record.credit_refunds_given

    return ReconciliationSummary(
        effective_sales=sales,
        opening_cash=cash.opening_cash,
        opening_bank_balance=bank.opening_bank_balance,
        cash_count=cash_count,
        cash=cash,
        bank=bank,
        variance=variance,
        performance=performance,
        net_credit_movement=net_credit.quantize(CENT),
        tab_flags=tab_flags,
    )
