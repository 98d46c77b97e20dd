"""Open / close / reopen lifecycle for a store's trading day.

Every transition re-reads the day row right before acting (bypassing whatever
the session already has cached) and refuses outright when that read disagrees
with the precondition. There is no retry; the caller decides what to tell the
user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dayclose.auth import Principal, is_admin_role
from dayclose.config import settings
from dayclose.errors import (
    AdminRequiredError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dayclose.models import DayOperation, DayOperationStatus, Store
from dayclose.services.aggregation_service import DailyAggregates
from dayclose.services.notification_service import (
    DayLifecycleSignal,
    SignalHandler,
    emit_lifecycle_signal,
)
from dayclose.services.reconciliation_record import ReconciliationRecord
from dayclose.services.reconciliation_summary_service import (
    ReconciliationSummary,
    build_reconciliation_summary,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 30


@dataclass(frozen=True)
class DayStatus:
    status: str
    is_open: bool
    can_open: bool
    can_close: bool
    can_reopen: bool
    message: str
    day_operation_id: int | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def today_local() -> date:
    return datetime.now(tz=ZoneInfo(settings.business_timezone)).date()


def _fresh(query):
    return query.execution_options(populate_existing=True)


def _ensure_store(db: Session, store_id: int | None) -> None:
    if not store_id:
        raise ValidationError('Select a store before opening a day')
    exists = db.execute(select(Store.id).where(Store.id == store_id, Store.active.is_(True))).scalar_one_or_none()
    if not exists:
        raise ValidationError('Store not found')


def get_day_operation_by_id(db: Session, day_operation_id: int, *, for_update: bool = False) -> DayOperation:
    query = _fresh(select(DayOperation).where(DayOperation.id == day_operation_id))
    if for_update:
        # SQLite ignores FOR UPDATE; Postgres serializes concurrent transitions on the row.
        query = query.with_for_update()
    day_operation = db.execute(query).scalar_one_or_none()
    if not day_operation:
        raise NotFoundError('Day operation not found')
    return day_operation


def get_day_operation(db: Session, *, store_id: int, business_date: date) -> DayOperation | None:
    return db.execute(
        _fresh(
            select(DayOperation).where(
                DayOperation.store_id == store_id,
                DayOperation.business_date == business_date,
            )
        )
    ).scalar_one_or_none()


def get_open_day_operation(db: Session, *, store_id: int) -> DayOperation | None:
    return db.execute(
        _fresh(
            select(DayOperation)
            .where(DayOperation.store_id == store_id, DayOperation.status == DayOperationStatus.OPEN)
            .order_by(DayOperation.business_date.desc())
        )
    ).scalars().first()


def get_day_status(
    db: Session,
    *,
    store_id: int,
    business_date: date,
    principal: Principal | None = None,
) -> DayStatus:
    day_operation = get_day_operation(db, store_id=store_id, business_date=business_date)
    if not day_operation:
        return DayStatus(
            status='not_found',
            is_open=False,
            can_open=True,
            can_close=False,
            can_reopen=False,
            message='Day has not been opened yet',
        )
    if day_operation.status == DayOperationStatus.OPEN:
        return DayStatus(
            status='open',
            is_open=True,
            can_open=False,
            can_close=True,
            can_reopen=False,
            message='Day is currently open',
            day_operation_id=day_operation.id,
        )
    return DayStatus(
        status='closed',
        is_open=False,
        can_open=False,
        can_close=False,
        can_reopen=principal is not None and is_admin_role(principal.role),
        message='Day has been closed',
        day_operation_id=day_operation.id,
    )


def get_previous_balances(db: Session, *, store_id: int, business_date: date | None = None) -> dict:
    if business_date:
        previous = get_day_operation(db, store_id=store_id, business_date=business_date - timedelta(days=1))
    else:
        previous = db.execute(
            select(DayOperation)
            .where(DayOperation.store_id == store_id, DayOperation.status == DayOperationStatus.CLOSED)
            .order_by(DayOperation.business_date.desc())
            .limit(1)
        ).scalars().first()

    return {
        'previous_closing_cash': (previous.closing_cash if previous and previous.closing_cash is not None else ZERO),
        'previous_bank_balance': (
            previous.actual_bank_balance if previous and previous.actual_bank_balance is not None else ZERO
        ),
        'previous_day': previous,
    }


def open_day(
    db: Session,
    *,
    store_id: int | None,
    business_date: date,
    opening_cash: Decimal | None = None,
    opening_bank_balance: Decimal | None = None,
    cashier_id: int | None = None,
    signal_handlers: list[SignalHandler] | None = None,
) -> DayOperation:
    _ensure_store(db, store_id)

    currently_open = get_open_day_operation(db, store_id=store_id)
    if currently_open:
        logger.warning('open refused: store=%s already has %s open', store_id, currently_open.business_date)
        raise ConflictError(
            f'A day is already open for {currently_open.business_date.isoformat()}. '
            'Please close it first before opening a new day.'
        )

    existing = get_day_operation(db, store_id=store_id, business_date=business_date)
    if existing:
        raise ConflictError('Day has already been closed for this date. Contact an administrator to reopen.')

    if opening_cash is None or opening_bank_balance is None:
        balances = get_previous_balances(db, store_id=store_id, business_date=business_date)
        if opening_cash is None:
            opening_cash = balances['previous_closing_cash']
        if opening_bank_balance is None:
            opening_bank_balance = balances['previous_bank_balance']

    day_operation = DayOperation(
        store_id=store_id,
        business_date=business_date,
        status=DayOperationStatus.OPEN,
        cashier_id=cashier_id,
        opening_cash=Decimal(opening_cash),
        opening_bank_balance=Decimal(opening_bank_balance),
        opened_at=_now(),
        cash_counts={},
    )
    db.add(day_operation)
    try:
        db.flush()
    except IntegrityError as exc:
        # Another writer opened a day for this store between our read and insert.
        # The session is unusable until the caller rolls back.
        raise ConflictError('Another day was opened for this store at the same time') from exc

    emit_lifecycle_signal(
        signal_handlers,
        DayLifecycleSignal(
            action='opened',
            day_operation_id=day_operation.id,
            store_id=day_operation.store_id,
            business_date=day_operation.business_date,
            occurred_at=day_operation.opened_at,
            actor_principal_id=cashier_id,
        ),
    )
    return day_operation


def _write_closing_snapshot(
    day_operation: DayOperation,
    record: ReconciliationRecord,
    aggregates: DailyAggregates,
    summary: ReconciliationSummary,
) -> None:
    sales = summary.effective_sales
    day_operation.total_sales = sales.total_sales
    day_operation.cash_sales = sales.cash_sales
    day_operation.card_sales = sales.card_sales
    day_operation.credit_sales = sales.credit_sales
    day_operation.split_sales = sales.split_sales
    day_operation.opening_cash = summary.opening_cash
    day_operation.opening_bank_balance = summary.opening_bank_balance

    counts = aggregates.transactions
    day_operation.total_transactions = counts.total_transactions
    day_operation.cash_transaction_count = counts.cash.count
    day_operation.card_transaction_count = counts.card.count
    day_operation.credit_transaction_count = counts.credit.count
    day_operation.split_transaction_count = counts.split.count

    day_operation.owner_deposits = record.owner_cash_deposits
    day_operation.owner_withdrawals = record.owner_cash_withdrawals
    day_operation.owner_bank_deposits = record.owner_bank_deposits
    day_operation.owner_bank_withdrawals = record.owner_bank_withdrawals
    day_operation.expense_payments = record.expense_payments
    day_operation.supplier_payments = record.supplier_payments
    day_operation.bank_transfers = record.bank_transfers
    day_operation.credit_payments_cash = record.credit_payments_cash
    day_operation.credit_payments_card = record.credit_payments_card
    day_operation.credit_refunds_given = record.credit_refunds_given
    day_operation.bank_withdrawals = record.bank_withdrawals
    day_operation.cash_misc_amount = record.cash_misc_amount
    day_operation.card_misc_amount = record.card_misc_amount
    day_operation.cash_counts = {line.code: line.count for line in summary.cash_count.lines}

    day_operation.expected_cash = summary.expected_cash
    day_operation.actual_cash_count = summary.actual_cash_count
    day_operation.closing_cash = summary.actual_cash_count
    day_operation.cash_difference = summary.cash_variance
    day_operation.expected_bank_balance = summary.expected_bank
    day_operation.actual_bank_balance = summary.actual_bank_balance
    day_operation.bank_difference = summary.bank_variance
    day_operation.pos_card_swipe_amount = record.pos_card_swipe_amount
    day_operation.card_swipe_variance = summary.card_swipe_variance
    day_operation.variance_severity = summary.severity.value

    day_operation.misc_notes = record.misc_notes or None
    day_operation.reconciliation_notes = record.reconciliation_notes or None


def close_day(
    db: Session,
    *,
    day_operation_id: int,
    record: ReconciliationRecord,
    aggregates: DailyAggregates,
    principal: Principal | None = None,
    signal_handlers: list[SignalHandler] | None = None,
) -> tuple[DayOperation, ReconciliationSummary]:
    day_operation = get_day_operation_by_id(db, day_operation_id, for_update=True)
    status = get_day_status(
        db,
        store_id=day_operation.store_id,
        business_date=day_operation.business_date,
        principal=principal,
    )
    if not status.is_open:
        logger.warning('close refused: day_operation=%s status=%s', day_operation_id, status.status)
        raise InvalidStateError(f'Day {day_operation.business_date.isoformat()} is not open')

    summary = build_reconciliation_summary(record, aggregates, trading_hours=settings.trading_hours_per_day)
    _write_closing_snapshot(day_operation, record, aggregates, summary)
    day_operation.status = DayOperationStatus.CLOSED
    day_operation.closed_at = _now()
    db.flush()

    emit_lifecycle_signal(
        signal_handlers,
        DayLifecycleSignal(
            action='closed',
            day_operation_id=day_operation.id,
            store_id=day_operation.store_id,
            business_date=day_operation.business_date,
            occurred_at=day_operation.closed_at,
            actor_principal_id=principal.id if principal else None,
            severity=summary.severity.value,
        ),
    )
    return day_operation, summary


def reopen_day(
    db: Session,
    *,
    day_operation_id: int,
    principal: Principal | None,
    signal_handlers: list[SignalHandler] | None = None,
) -> DayOperation:
    if principal is None or not is_admin_role(principal.role):
        raise AdminRequiredError('Only administrators can reopen closed days')

    day_operation = get_day_operation_by_id(db, day_operation_id, for_update=True)
    if day_operation.status != DayOperationStatus.CLOSED:
        raise InvalidStateError('Day operation is not closed, cannot reopen')

    currently_open = get_open_day_operation(db, store_id=day_operation.store_id)
    if currently_open and currently_open.id != day_operation.id:
        logger.warning(
            'reopen refused: day_operation=%s store=%s has %s open',
            day_operation_id,
            day_operation.store_id,
            currently_open.business_date,
        )
        raise ConflictError(
            f'Cannot reopen day. Day {currently_open.business_date.isoformat()} is currently open. '
            'Please close it first.'
        )

    day_operation.status = DayOperationStatus.OPEN
    day_operation.closed_at = None
    day_operation.reopened_at = _now()
    day_operation.reopened_by = principal.id
    db.flush()

    emit_lifecycle_signal(
        signal_handlers,
        DayLifecycleSignal(
            action='reopened',
            day_operation_id=day_operation.id,
            store_id=day_operation.store_id,
            business_date=day_operation.business_date,
            occurred_at=day_operation.reopened_at,
            actor_principal_id=principal.id,
        ),
    )
    return day_operation


def propose_next_day(day_operation: DayOperation, *, today: date | None = None) -> date | None:
    next_date = day_operation.business_date + timedelta(days=1)
    if next_date <= (today or today_local()):
        return next_date
    return None


def list_day_operations(
    db: Session,
    *,
    store_id: int | None = None,
    status: DayOperationStatus | None = None,
    limit: int | None = None,
    offset: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[DayOperation], int]:
    if start_date and end_date and start_date > end_date:
        raise ValidationError('Start date cannot be after end date')

    safe_limit = min(max(limit if limit is not None else DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    safe_offset = max(offset or 0, 0)

    conditions = []
    if store_id:
        conditions.append(DayOperation.store_id == store_id)
    if status:
        conditions.append(DayOperation.status == status)
    if start_date:
        conditions.append(DayOperation.business_date >= start_date)
    if end_date:
        conditions.append(DayOperation.business_date <= end_date)

    rows = db.execute(
        select(DayOperation)
        .where(*conditions)
        .order_by(DayOperation.business_date.desc(), DayOperation.id.desc())
        .limit(safe_limit)
        .offset(safe_offset)
    ).scalars().all()
    total = db.execute(select(func.count()).select_from(DayOperation).where(*conditions)).scalar_one()
    return list(rows), int(total)
