"""Group ledger transactions into candidate recurring clusters."""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from billwatch.logger import get_logger
from billwatch.models import TransactionType
from billwatch.repositories.base import TransactionRecord
from billwatch.utils.dates import to_date

logger = get_logger(__name__)

UNKNOWN_LABEL = "Unknown"

_WHITESPACE_RE = re.compile(r"\s+")


class ClusterKey(NamedTuple):
    label: str
    type: TransactionType

    def __str__(self) -> str:
        return f"{self.label}|{self.type.value}"


@dataclass(frozen=True)
class Occurrence:
    """One dated sighting of a cluster; ``amount`` is an absolute value or None."""

    tx_id: str
    date: date
    amount: Decimal | None
    merchant: str | None = None
    account_id: str | None = None


def label_for(record: TransactionRecord) -> str:
    """Normalized grouping label: merchant, then description, then category."""
    for candidate in (record.merchant, record.description, record.category):
        if candidate and candidate.strip():
            raw = candidate
            break
    else:
        raw = UNKNOWN_LABEL
    return _WHITESPACE_RE.sub(" ", raw.strip()).upper()


def transaction_type_of(record: TransactionRecord) -> TransactionType:
    raw = str(record.type or "").strip().lower()
    return TransactionType.INCOME if raw == TransactionType.INCOME.value else TransactionType.EXPENSE


def parse_amount(value: object) -> Decimal | None:
    """Absolute Decimal for ``value``; None when missing or unparsable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return abs(amount)


def cluster_transactions(records: list[TransactionRecord]) -> dict[ClusterKey, list[Occurrence]]:
    """Group ``records`` by ``(label, type)``.

    Records with unparsable dates are dropped one by one. Each cluster is
    sorted by date ascending; records sharing a date keep their input order.
    """
    clusters: dict[ClusterKey, list[Occurrence]] = {}
    for record in records:
        seen_on = to_date(record.date)
        if seen_on is None:
            logger.debug("Dropped transaction with unparsable date", tx_id=record.id, raw_date=record.date)
            continue

        key = ClusterKey(label_for(record), transaction_type_of(record))
        clusters.setdefault(key, []).append(
            Occurrence(
                tx_id=record.id,
                date=seen_on,
                amount=parse_amount(record.amount),
                merchant=record.merchant,
                account_id=record.account_id,
            )
        )

    for occurrences in clusters.values():
        occurrences.sort(key=lambda occ: occ.date)
    return clusters
