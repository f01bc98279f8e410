"""Dict-backed stores.

Used by tests and by tooling that runs detection without a database. Entities
are the same SQLAlchemy model classes, kept transient; ids and audit stamps
are assigned on ``add`` since no flush ever happens.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from billwatch.models import (
    OPEN_BILL_STATUSES,
    Bill,
    BillStatus,
    LedgerTransaction,
    PaycheckHit,
    RecurringSeries,
    SeriesKind,
)
from billwatch.repositories.base import (
    BillStore,
    LedgerStore,
    PaycheckStore,
    RecurringStores,
    SeriesStore,
    TransactionFilter,
    TransactionRecord,
    to_record,
)


def _stamp(entity: RecurringSeries | Bill | PaycheckHit | LedgerTransaction) -> None:
    now = datetime.now(UTC)
    if entity.id is None:
        entity.id = uuid4()
    if entity.created_at is None:
        entity.created_at = now
    entity.updated_at = now


class MemoryLedgerStore(LedgerStore):
    def __init__(self, transactions: list[LedgerTransaction] | None = None) -> None:
        self.transactions: dict[UUID, LedgerTransaction] = {}
        for transaction in transactions or []:
            _stamp(transaction)
            self.transactions[transaction.id] = transaction

    async def find(self, filter: TransactionFilter) -> list[TransactionRecord]:
        rows = [
            txn
            for txn in self.transactions.values()
            if txn.user_id == filter.user_id
            and (filter.since is None or txn.date >= filter.since)
            and (filter.type is None or txn.type == filter.type)
        ]
        return [to_record(txn) for txn in rows]

    async def get(self, user_id: UUID, transaction_id: UUID) -> LedgerTransaction | None:
        txn = self.transactions.get(transaction_id)
        if txn is None or txn.user_id != user_id:
            return None
        return txn

    async def find_by_external_id(self, user_id: UUID, external_id: str) -> LedgerTransaction | None:
        for txn in self.transactions.values():
            if txn.user_id == user_id and txn.external_id == external_id:
                return txn
        return None

    async def find_linked(
        self,
        user_id: UUID,
        *,
        bill_id: UUID | None = None,
        paycheck_id: UUID | None = None,
    ) -> LedgerTransaction | None:
        if bill_id is None and paycheck_id is None:
            return None
        for txn in self.transactions.values():
            if txn.user_id != user_id:
                continue
            if bill_id is not None and txn.matched_bill_id == bill_id:
                return txn
            if paycheck_id is not None and txn.matched_paycheck_id == paycheck_id:
                return txn
        return None

    async def id_in_use(self, transaction_id: UUID) -> bool:
        return transaction_id in self.transactions

    async def add(self, transaction: LedgerTransaction) -> LedgerTransaction:
        _stamp(transaction)
        self.transactions[transaction.id] = transaction
        return transaction

    async def save(self, transaction: LedgerTransaction) -> None:
        _stamp(transaction)


class MemorySeriesStore(SeriesStore):
    def __init__(self) -> None:
        self.series: dict[UUID, RecurringSeries] = {}
        self._by_key: dict[tuple[UUID, str, SeriesKind], UUID] = {}

    async def get(self, user_id: UUID, series_id: UUID) -> RecurringSeries | None:
        series = self.series.get(series_id)
        if series is None or series.user_id != user_id:
            return None
        return series

    async def find_by_key(self, user_id: UUID, name: str, kind: SeriesKind) -> RecurringSeries | None:
        series_id = self._by_key.get((user_id, name, kind))
        return self.series.get(series_id) if series_id else None

    async def insert_if_absent(self, series: RecurringSeries) -> tuple[RecurringSeries, bool]:
        # No await between the lookup and the insert, so this is atomic on the loop.
        key = (series.user_id, series.name, series.kind)
        existing_id = self._by_key.get(key)
        if existing_id is not None:
            return self.series[existing_id], False
        _stamp(series)
        self.series[series.id] = series
        self._by_key[key] = series.id
        return series, True

    async def save(self, series: RecurringSeries) -> None:
        _stamp(series)

    async def list_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[RecurringSeries]:
        rows = [
            s for s in self.series.values() if s.user_id == user_id and (s.active or not active_only)
        ]
        return sorted(rows, key=lambda s: s.name)


class MemoryBillStore(BillStore):
    def __init__(self) -> None:
        self.bills: dict[UUID, Bill] = {}

    def _for_user(self, user_id: UUID) -> list[Bill]:
        return [bill for bill in self.bills.values() if bill.user_id == user_id]

    async def get(self, user_id: UUID, bill_id: UUID) -> Bill | None:
        bill = self.bills.get(bill_id)
        if bill is None or bill.user_id != user_id:
            return None
        return bill

    async def find_open_near(
        self,
        user_id: UUID,
        series_id: UUID,
        around: date,
        window_days: int,
    ) -> Bill | None:
        candidates = [
            bill
            for bill in self._for_user(user_id)
            if bill.series_id == series_id
            and bill.status in OPEN_BILL_STATUSES
            and bill.due_date is not None
            and abs((bill.due_date - around).days) <= window_days
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda b: (abs((b.due_date - around).days), b.due_date))

    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> Bill | None:
        for bill in self._for_user(user_id):
            if bill.tx_id == tx_id:
                return bill
        return None

    async def list_for_series(self, user_id: UUID, series_id: UUID) -> list[Bill]:
        rows = [bill for bill in self._for_user(user_id) if bill.series_id == series_id]
        return sorted(rows, key=lambda b: (b.due_date or date.min))

    async def list_open_until(self, user_id: UUID, until: date) -> list[Bill]:
        rows = [
            bill
            for bill in self._for_user(user_id)
            if bill.status in OPEN_BILL_STATUSES
            and bill.due_date is not None
            and bill.due_date <= until
        ]
        return sorted(rows, key=lambda b: b.due_date)

    async def list_paid_since(self, user_id: UUID, since: date) -> list[Bill]:
        rows = [
            bill
            for bill in self._for_user(user_id)
            if bill.status == BillStatus.PAID and bill.paid_at is not None and bill.paid_at >= since
        ]
        return sorted(rows, key=lambda b: b.paid_at)

    async def add(self, bill: Bill) -> Bill:
        _stamp(bill)
        self.bills[bill.id] = bill
        return bill

    async def save(self, bill: Bill) -> None:
        _stamp(bill)


class MemoryPaycheckStore(PaycheckStore):
    def __init__(self) -> None:
        self.hits: dict[UUID, PaycheckHit] = {}

    async def get(self, user_id: UUID, hit_id: UUID) -> PaycheckHit | None:
        hit = self.hits.get(hit_id)
        if hit is None or hit.user_id != user_id:
            return None
        return hit

    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> PaycheckHit | None:
        for hit in self.hits.values():
            if hit.user_id == user_id and hit.tx_id == tx_id:
                return hit
        return None

    async def list_since(self, user_id: UUID, since: date) -> list[PaycheckHit]:
        rows = [hit for hit in self.hits.values() if hit.user_id == user_id and hit.date >= since]
        return sorted(rows, key=lambda h: h.date, reverse=True)

    async def add(self, hit: PaycheckHit) -> PaycheckHit:
        _stamp(hit)
        self.hits[hit.id] = hit
        return hit

    async def save(self, hit: PaycheckHit) -> None:
        _stamp(hit)


class MemoryStores(RecurringStores):
    def __init__(self, ledger: MemoryLedgerStore | None = None) -> None:
        self.ledger = ledger or MemoryLedgerStore()
        self.series = MemorySeriesStore()
        self.bills = MemoryBillStore()
        self.paychecks = MemoryPaycheckStore()
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # Dict writes cannot be undone; a failed scope keeps what it wrote.
        yield
