"""Store interfaces and their SQLAlchemy and in-memory implementations."""

from billwatch.repositories.base import (
    BillStore,
    ExternalRef,
    LedgerStore,
    LocalRef,
    PaycheckStore,
    RecurringStores,
    SeriesStore,
    TransactionFilter,
    TransactionRecord,
    TransactionSource,
    TxRef,
    parse_tx_ref,
)
from billwatch.repositories.memory import MemoryLedgerStore, MemoryStores
from billwatch.repositories.sqlalchemy import SQLAlchemyStores

__all__ = [
    "BillStore",
    "ExternalRef",
    "LedgerStore",
    "LocalRef",
    "MemoryLedgerStore",
    "MemoryStores",
    "PaycheckStore",
    "RecurringStores",
    "SQLAlchemyStores",
    "SeriesStore",
    "TransactionFilter",
    "TransactionRecord",
    "TransactionSource",
    "TxRef",
    "parse_tx_ref",
]
