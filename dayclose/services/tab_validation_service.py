from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dayclose.models import VarianceSeverity

CASH_ERROR_THRESHOLD = Decimal('100')
BANK_ERROR_THRESHOLD = Decimal('200')


@dataclass(frozen=True)
class SectionFlags:
    is_complete: bool
    has_errors: bool


@dataclass(frozen=True)
class TabFlags:
    cash: SectionFlags
    bank: SectionFlags
    monitoring: SectionFlags
    review: SectionFlags

    def as_dict(self) -> dict[str, dict[str, bool]]:
        return {
            name: {'is_complete': flags.is_complete, 'has_errors': flags.has_errors}
            for name, flags in (
                ('cash', self.cash),
                ('bank', self.bank),
                ('monitoring', self.monitoring),
                ('review', self.review),
            )
        }


def evaluate_tabs(
    *,
    actual_cash_count: Decimal,
    cash_variance: Decimal,
    actual_bank_balance: Decimal,
    opening_bank_balance: Decimal,
    bank_variance: Decimal,
    severity: VarianceSeverity,
) -> TabFlags:
    """Advisory completeness flags for the close screen sections.

    Nothing here gates closing the day; the lifecycle only looks at day status.
    """
    critical = severity == VarianceSeverity.CRITICAL
    return TabFlags(
        cash=SectionFlags(
            is_complete=actual_cash_count > 0,
            has_errors=abs(cash_variance) > CASH_ERROR_THRESHOLD,
        ),
        bank=SectionFlags(
            is_complete=actual_bank_balance > 0 or opening_bank_balance == 0,
            has_errors=abs(bank_variance) > BANK_ERROR_THRESHOLD,
        ),
        # Product monitoring is optional for closing.
        monitoring=SectionFlags(is_complete=True, has_errors=False),
        review=SectionFlags(is_complete=not critical, has_errors=critical),
    )
