"""Recurring series, bill and paycheck models."""

from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    DECIMAL,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from billwatch.database import Base
from billwatch.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin


class SeriesKind(str, Enum):
    """What a recurring series represents."""

    BILL = "bill"
    SUBSCRIPTION = "subscription"
    PAYCHECK = "paycheck"


class Cadence(str, Enum):
    """Inferred recurrence period of a series."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    UNKNOWN = "unknown"


class BillStatus(str, Enum):
    """Lifecycle of a concrete bill occurrence."""

    PREDICTED = "predicted"  # Far future, speculative
    DUE = "due"  # Inside the due horizon
    PAID = "paid"
    SKIPPED = "skipped"  # Only set by callers


OPEN_BILL_STATUSES = (BillStatus.DUE, BillStatus.PREDICTED)


class RecurringSeries(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """
    One inferred recurring pattern per user.

    ``next_due`` is always strictly later than ``last_seen``. Rows are never
    deleted; retired series are flagged ``active=False``.
    """

    __tablename__ = "recurring_series"
    __table_args__ = (
        UniqueConstraint("user_id", "name", "kind", name="uq_recurring_series_user_name_kind"),
        CheckConstraint("day_of_month BETWEEN 1 AND 28", name="series_day_of_month_range"),
        CheckConstraint("weekday BETWEEN 0 AND 6", name="series_weekday_range"),
    )

    kind: Mapped[SeriesKind] = mapped_column(
        SQLEnum(
            SeriesKind,
            name="series_kind_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cadence: Mapped[Cadence] = mapped_column(
        SQLEnum(
            Cadence,
            name="series_cadence_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=Cadence.UNKNOWN,
    )
    day_of_month: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    weekday: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)  # Monday = 0
    amount_hint: Mapped[Decimal | None] = mapped_column(DECIMAL(18, 2), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_seen: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    next_due: Mapped[date_type | None] = mapped_column(Date, nullable=True)


class Bill(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """One concrete expected or observed occurrence of a bill-kind series."""

    __tablename__ = "bills"
    __table_args__ = (Index("ix_bills_user_status_due", "user_id", "status", "due_date"),)

    series_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("recurring_series.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(DECIMAL(18, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True, index=True)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(
            BillStatus,
            name="bill_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=BillStatus.DUE,
        index=True,
    )
    # Ledger-local id once linked, otherwise the id the caller supplied
    tx_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    paid_at: Mapped[date_type | None] = mapped_column(Date, nullable=True)


class PaycheckHit(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """Append-only record of a confirmed income event."""

    __tablename__ = "paycheck_hits"
    __table_args__ = (
        CheckConstraint("amount > 0", name="paycheck_positive_amount"),
        Index("ix_paycheck_hits_user_date", "user_id", "date"),
    )

    series_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("recurring_series.id"), nullable=True, index=True
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tx_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
