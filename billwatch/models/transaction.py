"""Ledger transaction model.

The ledger is owned by another service; this core only reads it, patches the
linkage columns, and inserts manual rows for confirmed occurrences that have no
ledger counterpart.
"""

from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DECIMAL, Date, Float, ForeignKey, Index, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from billwatch.database import Base
from billwatch.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin


class TransactionType(str, Enum):
    """Ledger transaction direction."""

    INCOME = "income"
    EXPENSE = "expense"


class LedgerSource(str, Enum):
    """Where a ledger row came from."""

    MANUAL = "manual"
    BANK = "bank"


class LedgerTransaction(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """Ledger entry with recurring linkage columns."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_external_id", "user_id", "external_id"),
    )

    type: Mapped[TransactionType] = mapped_column(
        SQLEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source: Mapped[LedgerSource] = mapped_column(
        SQLEnum(
            LedgerSource,
            name="ledger_source_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=LedgerSource.MANUAL,
    )
    account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Bank-provided identifier
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Linkage columns
    matched_recurring_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("recurring_series.id"), nullable=True, index=True
    )
    matched_bill_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("bills.id"), nullable=True, index=True
    )
    matched_paycheck_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("paycheck_hits.id"), nullable=True, index=True
    )
    # Scores are non-monetary; floats are acceptable.
    match_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
