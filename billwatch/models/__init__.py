"""SQLAlchemy models package."""

from billwatch.models.recurring import (
    OPEN_BILL_STATUSES,
    Bill,
    BillStatus,
    Cadence,
    PaycheckHit,
    RecurringSeries,
    SeriesKind,
)
from billwatch.models.transaction import LedgerSource, LedgerTransaction, TransactionType

__all__ = [
    "OPEN_BILL_STATUSES",
    "Bill",
    "BillStatus",
    "Cadence",
    "LedgerSource",
    "LedgerTransaction",
    "PaycheckHit",
    "RecurringSeries",
    "SeriesKind",
    "TransactionType",
]
