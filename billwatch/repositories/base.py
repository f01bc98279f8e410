"""Repository interfaces for the recurring-detection core.

Services depend only on these interfaces; ``sqlalchemy.py`` implements them on
an ``AsyncSession`` and ``memory.py`` keeps everything in dicts.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from billwatch.models import (
    Bill,
    LedgerTransaction,
    PaycheckHit,
    RecurringSeries,
    SeriesKind,
    TransactionType,
)


@dataclass(frozen=True)
class TransactionRecord:
    """Read-only view of a ledger transaction.

    ``date`` and ``amount`` are left as the feed provides them; consumers parse
    them and drop what they cannot read.
    """

    id: str
    user_id: UUID
    type: str
    amount: Decimal | float | str | None
    date: date | str | None
    merchant: str | None = None
    category: str | None = None
    description: str | None = None
    account_id: str | None = None
    source: str | None = None


def to_record(transaction: LedgerTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=str(transaction.id),
        user_id=transaction.user_id,
        type=transaction.type.value,
        amount=transaction.amount,
        date=transaction.date,
        merchant=transaction.merchant,
        category=transaction.category,
        description=transaction.description,
        account_id=transaction.account_id,
        source=transaction.source.value if transaction.source else None,
    )


@dataclass(frozen=True)
class TransactionFilter:
    user_id: UUID
    since: date | None = None
    type: TransactionType | None = None


@dataclass(frozen=True)
class LocalRef:
    """A ledger-local transaction id."""

    id: UUID

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True)
class ExternalRef:
    """An id assigned outside the ledger, e.g. by the bank feed."""

    value: str

    def __str__(self) -> str:
        return self.value


TxRef = LocalRef | ExternalRef


def parse_tx_ref(raw: str) -> TxRef:
    """Classify a caller-supplied transaction id once, at the boundary."""
    text = raw.strip()
    try:
        return LocalRef(UUID(text))
    except ValueError:
        return ExternalRef(text)


class TransactionSource(ABC):
    """Read-only transaction feed consumed by detection."""

    @abstractmethod
    async def find(self, filter: TransactionFilter) -> list[TransactionRecord]:
        """Return the user's transactions matching ``filter``."""


class LedgerStore(TransactionSource):
    """Ledger access: the read feed plus linkage writes."""

    @abstractmethod
    async def get(self, user_id: UUID, transaction_id: UUID) -> LedgerTransaction | None: ...

    @abstractmethod
    async def find_by_external_id(self, user_id: UUID, external_id: str) -> LedgerTransaction | None: ...

    @abstractmethod
    async def find_linked(
        self,
        user_id: UUID,
        *,
        bill_id: UUID | None = None,
        paycheck_id: UUID | None = None,
    ) -> LedgerTransaction | None:
        """Return the row whose linkage column references the bill or paycheck."""

    @abstractmethod
    async def id_in_use(self, transaction_id: UUID) -> bool:
        """Whether any user's ledger already has a row with this id."""

    @abstractmethod
    async def add(self, transaction: LedgerTransaction) -> LedgerTransaction: ...

    @abstractmethod
    async def save(self, transaction: LedgerTransaction) -> None: ...

    async def resolve(self, user_id: UUID, ref: TxRef) -> LedgerTransaction | None:
        """Look a transaction up by whichever id kind ``ref`` carries."""
        if isinstance(ref, LocalRef):
            row = await self.get(user_id, ref.id)
            if row is not None:
                return row
            # Stand-in rows for ids taken by another ledger row keep the id as external_id
            return await self.find_by_external_id(user_id, str(ref.id))
        return await self.find_by_external_id(user_id, ref.value)


class SeriesStore(ABC):
    @abstractmethod
    async def get(self, user_id: UUID, series_id: UUID) -> RecurringSeries | None: ...

    @abstractmethod
    async def find_by_key(self, user_id: UUID, name: str, kind: SeriesKind) -> RecurringSeries | None: ...

    @abstractmethod
    async def insert_if_absent(self, series: RecurringSeries) -> tuple[RecurringSeries, bool]:
        """Atomically insert ``series`` unless ``(user_id, name, kind)`` exists.

        Returns the stored series and whether this call created it.
        """

    @abstractmethod
    async def save(self, series: RecurringSeries) -> None: ...

    @abstractmethod
    async def list_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[RecurringSeries]: ...


class BillStore(ABC):
    @abstractmethod
    async def get(self, user_id: UUID, bill_id: UUID) -> Bill | None: ...

    @abstractmethod
    async def find_open_near(
        self,
        user_id: UUID,
        series_id: UUID,
        around: date,
        window_days: int,
    ) -> Bill | None:
        """Return a due/predicted bill of the series due within ``around`` ± window."""

    @abstractmethod
    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> Bill | None: ...

    @abstractmethod
    async def list_for_series(self, user_id: UUID, series_id: UUID) -> list[Bill]: ...

    @abstractmethod
    async def list_open_until(self, user_id: UUID, until: date) -> list[Bill]:
        """Due/predicted bills with ``due_date <= until``, ascending by due date."""

    @abstractmethod
    async def list_paid_since(self, user_id: UUID, since: date) -> list[Bill]: ...

    @abstractmethod
    async def add(self, bill: Bill) -> Bill: ...

    @abstractmethod
    async def save(self, bill: Bill) -> None: ...


class PaycheckStore(ABC):
    @abstractmethod
    async def get(self, user_id: UUID, hit_id: UUID) -> PaycheckHit | None: ...

    @abstractmethod
    async def find_by_tx_id(self, user_id: UUID, tx_id: str) -> PaycheckHit | None: ...

    @abstractmethod
    async def list_since(self, user_id: UUID, since: date) -> list[PaycheckHit]:
        """Hits dated on or after ``since``, newest first."""

    @abstractmethod
    async def add(self, hit: PaycheckHit) -> PaycheckHit: ...

    @abstractmethod
    async def save(self, hit: PaycheckHit) -> None: ...


class RecurringStores(ABC):
    """The set of stores one invocation works against."""

    ledger: LedgerStore
    series: SeriesStore
    bills: BillStore
    paychecks: PaycheckStore

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Scope whose writes are undone on their own when it raises."""
