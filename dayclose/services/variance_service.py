from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from dayclose.models import VarianceSeverity

ZERO = Decimal('0.00')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')

CASH_VARIANCE_ALERT = Decimal('50')
BANK_VARIANCE_ALERT = Decimal('100')
LOW_AVERAGE_TICKET = Decimal('10')
CLEAN_CLOSE_TOLERANCE = Decimal('10')

# Upper bounds are inclusive: exactly 2% is still LOW.
SEVERITY_BANDS: tuple[tuple[Decimal, VarianceSeverity], ...] = (
    (Decimal('10'), VarianceSeverity.CRITICAL),
    (Decimal('5'), VarianceSeverity.HIGH),
    (Decimal('2'), VarianceSeverity.MEDIUM),
)


@dataclass(frozen=True)
class VarianceFacts:
    cash_variance: Decimal
    bank_variance: Decimal
    total_variance: Decimal
    variance_percentage: Decimal
    severity: VarianceSeverity
    total_transactions: int
    average_transaction_value: Decimal


@dataclass(frozen=True)
class AdvisoryRule:
    code: str
    applies: Callable[[VarianceFacts], bool]
    insight: Callable[[VarianceFacts], str]
    recommendations: tuple[str, ...]


@dataclass(frozen=True)
class VarianceAnalysis:
    cash_variance: Decimal
    bank_variance: Decimal
    total_variance: Decimal
    variance_percentage: Decimal
    severity: VarianceSeverity
    average_transaction_value: Decimal
    triggered_rules: list[str]
    insights: list[str]
    recommendations: list[str]


@dataclass(frozen=True)
class PerformanceMetrics:
    average_transaction_value: Decimal
    transaction_count: int
    sales_per_hour: Decimal
    low_performance_indicators: list[str]


ADVISORY_RULES: tuple[AdvisoryRule, ...] = (
    AdvisoryRule(
        code='CASH_VARIANCE',
        applies=lambda facts: abs(facts.cash_variance) > CASH_VARIANCE_ALERT,
        insight=lambda facts: f'Significant cash variance of {abs(facts.cash_variance):.2f} detected',
        recommendations=(
            'Recount cash denominations carefully',
            'Check for unrecorded cash transactions',
        ),
    ),
    AdvisoryRule(
        code='BANK_VARIANCE',
        applies=lambda facts: abs(facts.bank_variance) > BANK_VARIANCE_ALERT,
        insight=lambda facts: f'Bank balance variance of {abs(facts.bank_variance):.2f} identified',
        recommendations=(
            'Verify all card transactions are processed',
            'Check for pending bank transactions',
        ),
    ),
    AdvisoryRule(
        code='NO_TRANSACTIONS',
        applies=lambda facts: facts.total_transactions == 0,
        insight=lambda facts: 'No transactions recorded for this day',
        recommendations=('Verify transaction data is properly synced',),
    ),
    AdvisoryRule(
        code='LOW_AVERAGE_TICKET',
        applies=lambda facts: ZERO < facts.average_transaction_value < LOW_AVERAGE_TICKET,
        insight=lambda facts: 'Low average transaction value detected',
        recommendations=('Review small transaction patterns',),
    ),
    AdvisoryRule(
        code='CLEAN_CLOSE',
        applies=lambda facts: facts.severity == VarianceSeverity.LOW and facts.total_variance < CLEAN_CLOSE_TOLERANCE,
        insight=lambda facts: 'Excellent day reconciliation within acceptable variance',
        recommendations=('Continue following best practices',),
    ),
)


def classify_severity(variance_percentage: Decimal) -> VarianceSeverity:
    for floor, severity in SEVERITY_BANDS:
        if variance_percentage > floor:
            return severity
    return VarianceSeverity.LOW


def average_transaction_value(total_sales: Decimal, total_transactions: int) -> Decimal:
    if total_transactions <= 0:
        return ZERO
    return total_sales / Decimal(total_transactions)


def analyze_variance(
    *,
    cash_variance: Decimal,
    bank_variance: Decimal,
    total_sales: Decimal,
    total_transactions: int,
    rules: tuple[AdvisoryRule, ...] = ADVISORY_RULES,
) -> VarianceAnalysis:
    total_variance = abs(cash_variance) + abs(bank_variance)
    percentage = total_variance / total_sales * HUNDRED if total_sales > 0 else ZERO
    severity = classify_severity(percentage)
    avg_ticket = average_transaction_value(total_sales, total_transactions)

    facts = VarianceFacts(
        cash_variance=cash_variance,
        bank_variance=bank_variance,
        total_variance=total_variance,
        variance_percentage=percentage,
        severity=severity,
        total_transactions=total_transactions,
        average_transaction_value=avg_ticket,
    )

    triggered: list[str] = []
    insights: list[str] = []
    recommendations: list[str] = []
    for rule in rules:
        if not rule.applies(facts):
            continue
        triggered.append(rule.code)
        insights.append(rule.insight(facts))
        recommendations.extend(rule.recommendations)

    return VarianceAnalysis(
        cash_variance=cash_variance,
        bank_variance=bank_variance,
        total_variance=total_variance.quantize(CENT),
        variance_percentage=percentage.quantize(CENT),
        severity=severity,
        average_transaction_value=avg_ticket.quantize(CENT),
        triggered_rules=triggered,
        insights=insights,
        recommendations=recommendations,
    )


def compute_performance_metrics(
    *,
    total_sales: Decimal,
    total_transactions: int,
    trading_hours: int = 8,
) -> PerformanceMetrics:
    avg_ticket = average_transaction_value(total_sales, total_transactions)
    indicators: list[str] = []
    if avg_ticket < Decimal('15'):
        indicators.append('Low average transaction value')
    if total_transactions < 10:
        indicators.append('Low transaction count')
    if total_sales < Decimal('500'):
        indicators.append('Low total sales')

    hours = Decimal(max(trading_hours, 1))
    return PerformanceMetrics(
        average_transaction_value=avg_ticket.quantize(CENT),
        transaction_count=total_transactions,
        sales_per_hour=(total_sales / hours).quantize(CENT),
        low_performance_indicators=indicators,
    )
