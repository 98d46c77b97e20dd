from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dayclose.auth import (
    Principal,
    Role,
    assert_store_scope,
    get_current_principal,
    require_role,
    scoped_store_id,
)
from dayclose.config import settings
from dayclose.db import get_db
from dayclose.errors import (
    AdminRequiredError,
    ConflictError,
    DayOperationError,
    NotFoundError,
)
from dayclose.models import DayOperation, DayOperationStatus
from dayclose.services.aggregation_service import DailyAggregates, collect_daily_aggregates
from dayclose.services.day_operation_service import (
    close_day,
    get_day_operation_by_id,
    get_day_status,
    get_previous_balances,
    list_day_operations,
    open_day,
    propose_next_day,
    reopen_day,
)
from dayclose.services.ledger_provider import LedgerProvider
from dayclose.services.provider_factory import get_ledger_provider
from dayclose.services.reconciliation_record import (
    OVERRIDE_FIELDS,
    ReconciliationRecord,
    set_denomination_counts,
    set_override,
    start_reconciliation,
)
from dayclose.services.reconciliation_summary_service import ReconciliationSummary, build_reconciliation_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/till', tags=['till'])
staff_access = require_role(Role.ADMIN, Role.MANAGER, Role.CASHIER)


class OpenDayRequest(BaseModel):
    store_id: int
    business_date: date
    opening_cash: Decimal | None = None
    opening_bank_balance: Decimal | None = None


class ReconciliationRequest(BaseModel):
    denomination_counts: dict[str, int] = Field(default_factory=dict)
    cash_misc_amount: Decimal = Decimal('0')
    card_misc_amount: Decimal = Decimal('0')
    owner_cash_deposits: Decimal = Decimal('0')
    owner_cash_withdrawals: Decimal = Decimal('0')
    owner_bank_deposits: Decimal = Decimal('0')
    owner_bank_withdrawals: Decimal = Decimal('0')
    expense_payments: Decimal = Decimal('0')
    bank_transfers: Decimal = Decimal('0')
    actual_bank_balance: Decimal = Decimal('0')
    pos_card_swipe_amount: Decimal = Decimal('0')
    bank_withdrawals: Decimal = Decimal('0')
    credit_payments_cash: Decimal | None = None
    credit_payments_card: Decimal | None = None
    credit_refunds_given: Decimal | None = None
    supplier_payments: Decimal | None = None
    overrides: dict[str, Decimal] = Field(default_factory=dict)
    misc_notes: str = ''
    reconciliation_notes: str = ''


def _http_error(exc: DayOperationError) -> HTTPException:
    if isinstance(exc, AdminRequiredError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    # ValidationError and InvalidStateError
    return HTTPException(status_code=400, detail=str(exc))


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _serialize_day_operation(day_operation: DayOperation) -> dict:
    return {
        'id': day_operation.id,
        'store_id': day_operation.store_id,
        'business_date': day_operation.business_date.isoformat(),
        'status': day_operation.status.value,
        'opening_cash': _money(day_operation.opening_cash),
        'opening_bank_balance': _money(day_operation.opening_bank_balance),
        'total_sales': _money(day_operation.total_sales),
        'total_transactions': day_operation.total_transactions,
        'expected_cash': _money(day_operation.expected_cash),
        'actual_cash_count': _money(day_operation.actual_cash_count),
        'closing_cash': _money(day_operation.closing_cash),
        'cash_difference': _money(day_operation.cash_difference),
        'expected_bank_balance': _money(day_operation.expected_bank_balance),
        'actual_bank_balance': _money(day_operation.actual_bank_balance),
        'bank_difference': _money(day_operation.bank_difference),
        'card_swipe_variance': _money(day_operation.card_swipe_variance),
        'variance_severity': day_operation.variance_severity,
        'opened_at': day_operation.opened_at.isoformat() if day_operation.opened_at else None,
        'closed_at': day_operation.closed_at.isoformat() if day_operation.closed_at else None,
        'reopened_at': day_operation.reopened_at.isoformat() if day_operation.reopened_at else None,
        'reopened_by': day_operation.reopened_by,
    }


def _serialize_summary(summary: ReconciliationSummary) -> dict:
    sales = summary.effective_sales
    return {
        'effective_sales': {
            'total_sales': str(sales.total_sales),
            'cash_sales': str(sales.cash_sales),
            'card_sales': str(sales.card_sales),
            'credit_sales': str(sales.credit_sales),
            'split_sales': str(sales.split_sales),
            'manual_fields': list(sales.manual_fields),
        },
        'opening_cash': str(summary.opening_cash),
        'opening_bank_balance': str(summary.opening_bank_balance),
        'cash_count': {
            'lines': [
                {'code': line.code, 'label': line.label, 'count': line.count, 'amount': str(line.line_amount)}
                for line in summary.cash_count.lines
            ],
            'denominations_total': str(summary.cash_count.denominations_total),
            'misc_amount': str(summary.cash_count.misc_amount),
        },
        'expected_cash': str(summary.expected_cash),
        'actual_cash_count': str(summary.actual_cash_count),
        'cash_variance': str(summary.cash_variance),
        'expected_bank': str(summary.expected_bank),
        'actual_bank_balance': str(summary.actual_bank_balance),
        'bank_variance': str(summary.bank_variance),
        'card_swipe_variance': str(summary.card_swipe_variance),
        'net_credit_movement': str(summary.net_credit_movement),
        'variance_percentage': str(summary.variance.variance_percentage),
        'severity': summary.severity.value,
        'insights': summary.insights,
        'recommendations': summary.recommendations,
        'performance': {
            'average_transaction_value': str(summary.performance.average_transaction_value),
            'transaction_count': summary.performance.transaction_count,
            'sales_per_hour': str(summary.performance.sales_per_hour),
            'low_performance_indicators': summary.performance.low_performance_indicators,
        },
        'tabs': summary.tab_flags.as_dict(),
    }


def _build_record(
    day_operation: DayOperation,
    aggregates: DailyAggregates,
    payload: ReconciliationRequest,
) -> ReconciliationRecord:
    unknown = sorted(set(payload.overrides) - set(OVERRIDE_FIELDS))
    if unknown:
        raise HTTPException(status_code=400, detail=f'Unknown override field(s): {", ".join(unknown)}')

    record = start_reconciliation(day_operation, aggregates)
    for name in (
        'cash_misc_amount',
        'card_misc_amount',
        'owner_cash_deposits',
        'owner_cash_withdrawals',
        'owner_bank_deposits',
        'owner_bank_withdrawals',
        'expense_payments',
        'bank_transfers',
        'actual_bank_balance',
        'pos_card_swipe_amount',
        'bank_withdrawals',
    ):
        setattr(record, name, getattr(payload, name))
    # Credit and supplier amounts stay auto-populated unless the cashier typed one.
    for name in ('credit_payments_cash', 'credit_payments_card', 'credit_refunds_given', 'supplier_payments'):
        value = getattr(payload, name)
        if value is not None:
            setattr(record, name, value)
    for name, value in payload.overrides.items():
        set_override(record, name, value)
    set_denomination_counts(record, payload.denomination_counts)
    record.misc_notes = payload.misc_notes
    record.reconciliation_notes = payload.reconciliation_notes
    return record


def _load_day_for_principal(db: Session, day_operation_id: int, principal: Principal) -> DayOperation:
    try:
        day_operation = get_day_operation_by_id(db, day_operation_id)
    except DayOperationError as exc:
        raise _http_error(exc) from exc
    assert_store_scope(principal, day_operation.store_id)
    return day_operation


@router.get('/days/status')
def day_status(
    store_id: int,
    business_date: date,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    assert_store_scope(principal, store_id)
    status = get_day_status(db, store_id=store_id, business_date=business_date, principal=principal)
    return {
        'status': status.status,
        'is_open': status.is_open,
        'can_open': status.can_open,
        'can_close': status.can_close,
        'can_reopen': status.can_reopen,
        'message': status.message,
        'day_operation_id': status.day_operation_id,
    }


@router.get('/days')
def list_days(
    store_id: int | None = None,
    status: DayOperationStatus | None = None,
    limit: int = 30,
    offset: int = 0,
    start_date: date | None = None,
    end_date: date | None = None,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        rows, total = list_day_operations(
            db,
            store_id=scoped_store_id(principal, store_id),
            status=status,
            limit=limit,
            offset=offset,
            start_date=start_date,
            end_date=end_date,
        )
    except DayOperationError as exc:
        raise _http_error(exc) from exc
    return {
        'items': [_serialize_day_operation(row) for row in rows],
        'total': total,
    }


@router.get('/previous-balances')
def previous_balances(
    store_id: int,
    business_date: date | None = Query(default=None),
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    assert_store_scope(principal, store_id)
    balances = get_previous_balances(db, store_id=store_id, business_date=business_date)
    previous = balances['previous_day']
    return {
        'previous_closing_cash': str(balances['previous_closing_cash']),
        'previous_bank_balance': str(balances['previous_bank_balance']),
        'previous_business_date': previous.business_date.isoformat() if previous else None,
    }


@router.post('/days/open', status_code=201)
def open_day_endpoint(
    payload: OpenDayRequest,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    assert_store_scope(principal, payload.store_id)
    try:
        day_operation = open_day(
            db,
            store_id=payload.store_id,
            business_date=payload.business_date,
            opening_cash=payload.opening_cash,
            opening_bank_balance=payload.opening_bank_balance,
            cashier_id=principal.id,
        )
    except DayOperationError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    db.commit()
    return _serialize_day_operation(day_operation)


@router.post('/days/{day_operation_id}/reconciliation')
def preview_reconciliation(
    day_operation_id: int,
    payload: ReconciliationRequest,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    provider: LedgerProvider = Depends(get_ledger_provider),
):
    day_operation = _load_day_for_principal(db, day_operation_id, principal)
    aggregates = collect_daily_aggregates(
        provider,
        store_id=day_operation.store_id,
        business_date=day_operation.business_date,
    )
    record = _build_record(day_operation, aggregates, payload)
    summary = build_reconciliation_summary(record, aggregates, trading_hours=settings.trading_hours_per_day)
    return _serialize_summary(summary)


@router.post('/days/{day_operation_id}/close')
def close_day_endpoint(
    day_operation_id: int,
    payload: ReconciliationRequest,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    provider: LedgerProvider = Depends(get_ledger_provider),
):
    day_operation = _load_day_for_principal(db, day_operation_id, principal)
    try:
        aggregates = collect_daily_aggregates(
            provider,
            store_id=day_operation.store_id,
            business_date=day_operation.business_date,
        )
    except Exception as exc:
        logger.exception('ledger aggregation failed for day_operation=%s', day_operation_id)
        raise HTTPException(status_code=500, detail='Could not load sales data for this day') from exc

    record = _build_record(day_operation, aggregates, payload)
    try:
        closed, summary = close_day(
            db,
            day_operation_id=day_operation_id,
            record=record,
            aggregates=aggregates,
            principal=principal,
        )
    except DayOperationError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    db.commit()

    next_date = propose_next_day(closed)
    return {
        'day_operation': _serialize_day_operation(closed),
        'summary': _serialize_summary(summary),
        'next_business_date': next_date.isoformat() if next_date else None,
    }


@router.post('/days/{day_operation_id}/reopen')
def reopen_day_endpoint(
    day_operation_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        day_operation = reopen_day(db, day_operation_id=day_operation_id, principal=principal)
    except DayOperationError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    db.commit()
    return _serialize_day_operation(day_operation)
