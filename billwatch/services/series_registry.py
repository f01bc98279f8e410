"""Create or refresh ``RecurringSeries`` rows from consistent clusters."""

from datetime import date
from uuid import UUID

from billwatch.logger import get_logger
from billwatch.models import Cadence, RecurringSeries, SeriesKind, TransactionType
from billwatch.repositories.base import SeriesStore
from billwatch.services.cadence import bump_next_due, cadence_anchor
from billwatch.services.consistency import ConsistentCluster

logger = get_logger(__name__)


def kind_for(transaction_type: TransactionType) -> SeriesKind:
    return SeriesKind.PAYCHECK if transaction_type == TransactionType.INCOME else SeriesKind.BILL


def touch_series(series: RecurringSeries, seen_on: date) -> bool:
    """Advance ``last_seen``/``next_due`` to an observation on ``seen_on``.

    Observations older than ``last_seen`` leave the series untouched. Returns
    whether anything changed.
    """
    if series.last_seen is not None and seen_on < series.last_seen:
        return False

    next_due = bump_next_due(seen_on, series.cadence or Cadence.UNKNOWN, series.day_of_month)
    if series.last_seen == seen_on and series.next_due == next_due:
        return False

    series.last_seen = seen_on
    series.next_due = next_due
    return True


async def register_series(
    store: SeriesStore,
    user_id: UUID,
    cluster: ConsistentCluster,
    cadence: Cadence,
) -> tuple[RecurringSeries, bool]:
    """Upsert the series for ``cluster``; returns ``(series, created)``."""
    kind = kind_for(cluster.key.type)
    last_seen = cluster.last_seen
    day_of_month, weekday = cadence_anchor(last_seen, cadence)

    candidate = RecurringSeries(
        user_id=user_id,
        kind=kind,
        name=cluster.key.label,
        merchant=cluster.merchant,
        cadence=cadence,
        day_of_month=day_of_month,
        weekday=weekday,
        amount_hint=cluster.representative,
        active=True,
        last_seen=last_seen,
        next_due=bump_next_due(last_seen, cadence, day_of_month),
    )
    series, created = await store.insert_if_absent(candidate)
    if created:
        logger.info(
            "Recurring series created",
            series_id=str(series.id),
            name=series.name,
            kind=kind.value,
            cadence=cadence.value,
        )
        return series, True

    if cluster.merchant:
        series.merchant = cluster.merchant
    series.cadence = cadence
    series.amount_hint = cluster.representative
    series.day_of_month = day_of_month
    series.weekday = weekday
    series.active = True
    touch_series(series, last_seen)
    await store.save(series)

    logger.debug("Recurring series refreshed", series_id=str(series.id), name=series.name)
    return series, False
