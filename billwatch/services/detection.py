"""Recurring-series detection pipeline.

transactions -> clusters -> consistency gate -> cadence -> series upsert ->
bill scheduling. One sequential pass per call, scoped to one user.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from uuid import UUID

from billwatch.config import settings
from billwatch.logger import async_log_timing, get_logger, log_exception
from billwatch.repositories.base import RecurringStores, TransactionFilter, TransactionSource
from billwatch.services.bill_scheduler import promote_due_bills, schedule_bill
from billwatch.services.cadence import infer_cadence
from billwatch.services.clustering import ClusterKey, Occurrence, cluster_transactions
from billwatch.services.consistency import filter_cluster
from billwatch.services.errors import InfrastructureError, RecurringError, ValidationError
from billwatch.services.series_registry import register_series

logger = get_logger(__name__)


@dataclass
class DetectionItem:
    key: str
    series_id: UUID | None
    count: int


@dataclass
class DetectionResult:
    ok: bool = True
    results: list[DetectionItem] = field(default_factory=list)


async def _load_transactions(source: object, filter: TransactionFilter) -> list:
    find = getattr(source, "find", None)
    if not callable(find):
        raise InfrastructureError("Transaction source does not provide find()")
    try:
        records = await find(filter)
    except RecurringError:
        raise
    except Exception as exc:
        raise InfrastructureError(f"Transaction source failed: {exc}") from exc
    if not isinstance(records, list):
        raise InfrastructureError(
            f"Transaction source returned {type(records).__name__}, expected a list"
        )
    return records


async def _process_cluster(
    stores: RecurringStores,
    user_id: UUID,
    key: ClusterKey,
    occurrences: list[Occurrence],
) -> DetectionItem | None:
    cluster = filter_cluster(key, occurrences)
    if cluster is None:
        return None

    cadence = infer_cadence(cluster.intervals())
    series, _ = await register_series(stores.series, user_id, cluster, cadence)
    await schedule_bill(stores.bills, series)
    return DetectionItem(key=str(key), series_id=series.id, count=len(cluster.occurrences))


async def detect_recurring_for_user(
    stores: RecurringStores,
    user_id: UUID,
    lookback_days: int | None = None,
    *,
    source: TransactionSource | None = None,
    today: date | None = None,
) -> DetectionResult:
    """Detect recurring series in the user's recent transactions.

    ``source`` defaults to the ledger store. A cluster that fails is logged
    and left out of the results; store failures abort the whole run.
    """
    lookback = settings.recurring_lookback_days if lookback_days is None else lookback_days
    if lookback < 1:
        raise ValidationError("lookback_days must be at least 1")

    today = today or date.today()
    source = stores.ledger if source is None else source
    result = DetectionResult()

    async with async_log_timing(
        "detect_recurring", logger=logger, user_id=str(user_id), lookback_days=lookback
    ) as timing:
        records = await _load_transactions(
            source, TransactionFilter(user_id=user_id, since=today - timedelta(days=lookback))
        )
        clusters = cluster_transactions(records)

        for key, occurrences in clusters.items():
            try:
                async with stores.savepoint():
                    item = await _process_cluster(stores, user_id, key, occurrences)
            except InfrastructureError:
                raise
            except Exception as exc:
                log_exception(logger, exc, "Skipped cluster due to error", key=str(key))
                continue
            if item is not None:
                result.results.append(item)

        await promote_due_bills(stores.bills, user_id, today, settings.bill_due_horizon_days)

        timing["transactions"] = len(records)
        timing["clusters"] = len(clusters)
        timing["series"] = len(result.results)

    return result
