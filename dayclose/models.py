from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
BigIntegerPK = BigInteger().with_variant(Integer(), 'sqlite')
Money = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class DayOperationStatus(str, Enum):
    OPEN = 'OPEN'
    CLOSED = 'CLOSED'


class PaymentMethod(str, Enum):
    CASH = 'cash'
    CARD = 'card'
    CREDIT = 'credit'
    SPLIT = 'split'


class CreditTransactionType(str, Enum):
    PAYMENT = 'payment'
    REFUND = 'refund'


class VarianceSeverity(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class Store(Base):
    __tablename__ = 'stores'

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class DayOperation(Base):
    __tablename__ = 'day_operations'
    __table_args__ = (
        UniqueConstraint('store_id', 'business_date', name='uq_day_operations_store_date'),
        Index(
            'uq_day_operations_one_open_per_store',
            'store_id',
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    business_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[DayOperationStatus] = mapped_column(
        SQLEnum(DayOperationStatus, name='day_operation_status'),
        nullable=False,
        default=DayOperationStatus.OPEN,
    )
    cashier_id: Mapped[int | None] = mapped_column(BigInteger)

    opening_cash: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    opening_bank_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))

    total_sales: Mapped[Decimal | None] = mapped_column(Money)
    cash_sales: Mapped[Decimal | None] = mapped_column(Money)
    card_sales: Mapped[Decimal | None] = mapped_column(Money)
    credit_sales: Mapped[Decimal | None] = mapped_column(Money)
    split_sales: Mapped[Decimal | None] = mapped_column(Money)

    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cash_transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    card_transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credit_transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    split_transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    owner_deposits: Mapped[Decimal | None] = mapped_column(Money)
    owner_withdrawals: Mapped[Decimal | None] = mapped_column(Money)
    owner_bank_deposits: Mapped[Decimal | None] = mapped_column(Money)
    owner_bank_withdrawals: Mapped[Decimal | None] = mapped_column(Money)
    expense_payments: Mapped[Decimal | None] = mapped_column(Money)
    supplier_payments: Mapped[Decimal | None] = mapped_column(Money)
    bank_transfers: Mapped[Decimal | None] = mapped_column(Money)
    credit_payments_cash: Mapped[Decimal | None] = mapped_column(Money)
    credit_payments_card: Mapped[Decimal | None] = mapped_column(Money)
    credit_refunds_given: Mapped[Decimal | None] = mapped_column(Money)
    bank_withdrawals: Mapped[Decimal | None] = mapped_column(Money)
    cash_misc_amount: Mapped[Decimal | None] = mapped_column(Money)
    card_misc_amount: Mapped[Decimal | None] = mapped_column(Money)
    cash_counts: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    expected_cash: Mapped[Decimal | None] = mapped_column(Money)
    actual_cash_count: Mapped[Decimal | None] = mapped_column(Money)
    closing_cash: Mapped[Decimal | None] = mapped_column(Money)
    cash_difference: Mapped[Decimal | None] = mapped_column(Money)
    expected_bank_balance: Mapped[Decimal | None] = mapped_column(Money)
    actual_bank_balance: Mapped[Decimal | None] = mapped_column(Money)
    bank_difference: Mapped[Decimal | None] = mapped_column(Money)
    pos_card_swipe_amount: Mapped[Decimal | None] = mapped_column(Money)
    card_swipe_variance: Mapped[Decimal | None] = mapped_column(Money)
    variance_severity: Mapped[str | None] = mapped_column(Text)

    misc_notes: Mapped[str | None] = mapped_column(Text)
    reconciliation_notes: Mapped[str | None] = mapped_column(Text)

    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reopened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reopened_by: Mapped[int | None] = mapped_column(BigInteger)


class Transaction(Base):
    __tablename__ = 'transactions'

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('stores.id'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)


class CreditTransaction(Base):
    __tablename__ = 'credit_transactions'

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    store_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('stores.id'), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)


class SupplierPayment(Base):
    __tablename__ = 'supplier_payments'

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
