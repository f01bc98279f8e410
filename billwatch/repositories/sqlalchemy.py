"""Stores backed by an ``AsyncSession``.

Writes are flushed, never committed; the request (or script) that owns the
session decides when to commit via ``SQLAlchemyStores.commit``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Select, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

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
from billwatch.services.errors import InfrastructureError

_CONNECTION_ERRORS = (OperationalError, InterfaceError)


class _SessionStore:
    """Shared session plumbing; connection failures surface as InfrastructureError."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _execute(self, statement: Any) -> Any:
        try:
            return await self.session.execute(statement)
        except _CONNECTION_ERRORS as exc:
            raise InfrastructureError(f"Database unavailable: {exc}") from exc

    async def _first(self, statement: Select) -> Any:
        result = await self._execute(statement.limit(1))
        return result.scalars().first()

    async def _all(self, statement: Select) -> list[Any]:
        result = await self._execute(statement)
        return list(result.scalars().all())

    async def _add(self, entity: Any) -> None:
        self.session.add(entity)
        await self._flush()

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except _CONNECTION_ERRORS as exc:
            raise InfrastructureError(f"Database unavailable: {exc}") from exc


class SQLAlchemyLedgerStore(_SessionStore, LedgerStore):
    async def find(self, filter: TransactionFilter) -> list[TransactionRecord]:
        query = select(LedgerTransaction).where(LedgerTransaction.user_id == filter.user_id)
        if filter.since is not None:
            query = query.where(LedgerTransaction.date >= filter.since)
        if filter.type is not None:
            query = query.where(LedgerTransaction.type == filter.type)
        rows = await self._all(query.order_by(LedgerTransaction.date))
        return [to_record(row) for row in rows]

    async def get(self, user_id: UUID, transaction_id: UUID) -> LedgerTransaction | None:
        return await self._first(
            select(LedgerTransaction)
            .where(LedgerTransaction.id == transaction_id)
            .where(LedgerTransaction.user_id == user_id)
        )

    async def find_by_external_id(self, user_id: UUID, external_id: str) -> LedgerTransaction | None:
        return await self._first(
            select(LedgerTransaction)
            .where(LedgerTransaction.user_id == user_id)
            .where(LedgerTransaction.external_id == external_id)
            .order_by(LedgerTransaction.created_at)
        )

    async def find_linked(
        self,
        user_id: UUID,
        *,
        bill_id: UUID | None = None,
        paycheck_id: UUID | None = None,
    ) -> LedgerTransaction | None:
        conditions = []
        if bill_id is not None:
            conditions.append(LedgerTransaction.matched_bill_id == bill_id)
        if paycheck_id is not None:
            conditions.append(LedgerTransaction.matched_paycheck_id == paycheck_id)
        if not conditions:
            return None
        return await self._first(
            select(LedgerTransaction)
            .where(LedgerTransaction.user_id == user_id)
            .where(or_(*conditions))
            .order_by(LedgerTransaction.created_at)
        )

    async def id_in_use(self, transaction_id: UUID) -> bool:
        result = await self._execute(select(LedgerTransaction.id).where(LedgerTransaction.id == transaction_id))
        return result.scalar_one_or_none() is not None

    async def add(self, transaction: LedgerTransaction) -> LedgerTransaction:
        await self._add(transaction)
        return transaction

    async def save(self, transaction: LedgerTransaction) -> None:
        await self._flush()


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise InfrastructureError(f"Atomic series upsert not supported on dialect {dialect!r}")


class SQLAlchemySeriesStore(_SessionStore, SeriesStore):
    async def get(self, user_id: UUID, series_id: UUID) -> RecurringSeries | None:
        return await self._first(
            select(RecurringSeries)
            .where(RecurringSeries.id == series_id)
            .where(RecurringSeries.user_id == user_id)
        )

    async def find_by_key(self, user_id: UUID, name: str, kind: SeriesKind) -> RecurringSeries | None:
        return await self._first(
            select(RecurringSeries)
            .where(RecurringSeries.user_id == user_id)
            .where(RecurringSeries.name == name)
            .where(RecurringSeries.kind == kind)
            .execution_options(populate_existing=True)
        )

    async def insert_if_absent(self, series: RecurringSeries) -> tuple[RecurringSeries, bool]:
        now = datetime.now(UTC)
        values = {
            "id": series.id or uuid4(),
            "user_id": series.user_id,
            "kind": series.kind,
            "name": series.name,
            "merchant": series.merchant,
            "cadence": series.cadence,
            "day_of_month": series.day_of_month,
            "weekday": series.weekday,
            "amount_hint": series.amount_hint,
            "active": True if series.active is None else series.active,
            "last_seen": series.last_seen,
            "next_due": series.next_due,
            "created_at": now,
            "updated_at": now,
        }
        insert = _insert_for(self.session)
        statement = (
            insert(RecurringSeries)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["user_id", "name", "kind"])
            .returning(RecurringSeries.id)
        )
        result = await self._execute(statement)
        inserted_id = result.scalar_one_or_none()

        stored = await self.find_by_key(series.user_id, series.name, series.kind)
        if stored is None:
            raise InfrastructureError(
                f"Series {series.name!r} missing after conditional insert for user {series.user_id}"
            )
        return stored, inserted_id is not None

    async def save(self, series: RecurringSeries) -> None:
        await self._flush()

    async def list_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[RecurringSeries]:
        query = select(RecurringSeries).where(RecurringSeries.user_id == user_id)
        if active_only:
            query = query.where(RecurringSeries.active.is_(True))
        return await self._all(query.order_by(RecurringSeries.name))


class SQLAlchemyBillStore(_SessionStore, BillStore):
    async def get(self, user_id: UUID, bill_id: UUID) -> Bill | None:
        return await self._first(select(Bill).where(Bill.id == bill_id).where(Bill.user_id == user_id))

    async def find_open_near(
        self,
        user_id: UUID,
        series_id: UUID,
        around: date,
        window_days: int,
    ) -> Bill | None:
        window = timedelta(days=window_days)
        candidates = await self._all(
            select(Bill)
            .where(Bill.user_id == user_id)
            .where(Bill.series_id == series_id)
            .where(Bill.status.in_(OPEN_BILL_STATUSES))
            .where(Bill.due_date >= around - window)
            .where(Bill.due_date <= around + window)
            .order_by(Bill.due_date)
        )
        if not candidates:
            return None
        return min(candidates, key=lambda b: (abs((b.due_date - around).days), b.due_date))

    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> Bill | None:
        return await self._first(
            select(Bill).where(Bill.user_id == user_id).where(Bill.tx_id == tx_id).order_by(Bill.created_at)
        )

    async def list_for_series(self, user_id: UUID, series_id: UUID) -> list[Bill]:
        return await self._all(
            select(Bill)
            .where(Bill.user_id == user_id)
            .where(Bill.series_id == series_id)
            .order_by(Bill.due_date)
        )

    async def list_open_until(self, user_id: UUID, until: date) -> list[Bill]:
        return await self._all(
            select(Bill)
            .where(Bill.user_id == user_id)
            .where(Bill.status.in_(OPEN_BILL_STATUSES))
            .where(Bill.due_date <= until)
            .order_by(Bill.due_date.asc())
        )

    async def list_paid_since(self, user_id: UUID, since: date) -> list[Bill]:
        return await self._all(
            select(Bill)
            .where(Bill.user_id == user_id)
            .where(Bill.status == BillStatus.PAID)
            .where(Bill.paid_at >= since)
            .order_by(Bill.paid_at)
        )

    async def add(self, bill: Bill) -> Bill:
        await self._add(bill)
        return bill

    async def save(self, bill: Bill) -> None:
        await self._flush()


class SQLAlchemyPaycheckStore(_SessionStore, PaycheckStore):
    async def get(self, user_id: UUID, hit_id: UUID) -> PaycheckHit | None:
        return await self._first(
            select(PaycheckHit).where(PaycheckHit.id == hit_id).where(PaycheckHit.user_id == user_id)
        )

    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> PaycheckHit | None:
        return await self._first(
            select(PaycheckHit)
            .where(PaycheckHit.user_id == user_id)
            .where(PaycheckHit.tx_id == tx_id)
            .order_by(PaycheckHit.created_at)
        )

    async def list_since(self, user_id: UUID, since: date) -> list[PaycheckHit]:
        return await self._all(
            select(PaycheckHit)
            .where(PaycheckHit.user_id == user_id)
            .where(PaycheckHit.date >= since)
            .order_by(PaycheckHit.date.desc())
        )

    async def add(self, hit: PaycheckHit) -> PaycheckHit:
        await self._add(hit)
        return hit

    async def save(self, hit: PaycheckHit) -> None:
        await self._flush()


class SQLAlchemyStores(RecurringStores):
    """All stores bound to one session (one unit of work)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.ledger = SQLAlchemyLedgerStore(session)
        self.series = SQLAlchemySeriesStore(session)
        self.bills = SQLAlchemyBillStore(session)
        self.paychecks = SQLAlchemyPaycheckStore(session)

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except _CONNECTION_ERRORS as exc:
            raise InfrastructureError(f"Database unavailable: {exc}") from exc

    async def rollback(self) -> None:
        await self.session.rollback()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """SAVEPOINT around one unit of work; a failure rolls back only that unit."""
        try:
            async with self.session.begin_nested():
                yield
        except _CONNECTION_ERRORS as exc:
            raise InfrastructureError(f"Database unavailable: {exc}") from exc
