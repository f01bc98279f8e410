"""Occurrence-count and amount-tolerance gate for clusters."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from billwatch.services.clustering import ClusterKey, Occurrence

MIN_OCCURRENCES = 3
AMOUNT_TOLERANCE = Decimal("0.15")
MIN_CONSISTENT_RATIO = Decimal("0.6")


@dataclass(frozen=True)
class ConsistentCluster:
    """A cluster that passed the gate, with its representative amount."""

    key: ClusterKey
    occurrences: list[Occurrence]
    representative: Decimal

    @property
    def last_seen(self) -> date:
        return self.occurrences[-1].date

    @property
    def merchant(self) -> str | None:
        for occ in reversed(self.occurrences):
            if occ.merchant and occ.merchant.strip():
                return occ.merchant.strip()
        return None

    def intervals(self) -> list[int]:
        """Day gaps between consecutive occurrences."""
        dates = [occ.date for occ in self.occurrences]
        return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]


def within_tolerance(amount: Decimal, representative: Decimal, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    """Inclusive ``representative * (1 ± tolerance)`` band check."""
    low = representative * (1 - tolerance)
    high = representative * (1 + tolerance)
    return low <= amount <= high


def filter_cluster(key: ClusterKey, occurrences: list[Occurrence]) -> ConsistentCluster | None:
    """Return the cluster if it is regular enough to be a recurring series.

    Occurrences without a positive amount are ignored. The representative is
    the amount at the middle index of the date-sorted list (not the median of
    sorted amounts); at least 60% of occurrences must sit within ±15% of it.
    """
    valid = [occ for occ in occurrences if occ.amount is not None and occ.amount > 0]
    if len(valid) < MIN_OCCURRENCES:
        return None

    representative = valid[len(valid) // 2].amount
    consistent = sum(1 for occ in valid if within_tolerance(occ.amount, representative))
    if Decimal(consistent) < Decimal(len(valid)) * MIN_CONSISTENT_RATIO:
        return None

    return ConsistentCluster(key=key, occurrences=valid, representative=representative)
