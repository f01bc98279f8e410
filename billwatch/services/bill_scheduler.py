"""Keep one open ``Bill`` per upcoming occurrence of bill-kind series."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from billwatch.config import settings
from billwatch.logger import get_logger
from billwatch.models import Bill, BillStatus, RecurringSeries, SeriesKind
from billwatch.repositories.base import BillStore

logger = get_logger(__name__)

SCHEDULE_WINDOW_DAYS = 5
AMOUNT_DRIFT_TOLERANCE = Decimal("0.30")

BILL_KINDS = (SeriesKind.BILL, SeriesKind.SUBSCRIPTION)


def amount_drifted(current: Decimal | None, observed: Decimal | None) -> bool:
    """True when ``observed`` should replace the stored amount."""
    if observed is None:
        return False
    if current is None:
        return True
    low = current * (1 - AMOUNT_DRIFT_TOLERANCE)
    high = current * (1 + AMOUNT_DRIFT_TOLERANCE)
    return not (low <= observed <= high)


async def schedule_bill(store: BillStore, series: RecurringSeries) -> Bill | None:
    """Ensure an open bill exists near ``series.next_due``.

    Paycheck series and series without a next due date get no bill.
    """
    if series.kind not in BILL_KINDS or series.next_due is None:
        return None

    bill = await store.find_open_near(series.user_id, series.id, series.next_due, SCHEDULE_WINDOW_DAYS)
    if bill is not None:
        changed = False
        if amount_drifted(bill.amount, series.amount_hint):
            bill.amount = series.amount_hint
            changed = True
        if bill.status == BillStatus.PREDICTED:
            bill.status = BillStatus.DUE
            changed = True
        if changed:
            await store.save(bill)
        return bill

    bill = Bill(
        user_id=series.user_id,
        series_id=series.id,
        name=series.name,
        merchant=series.merchant,
        amount=series.amount_hint,
        currency=settings.default_currency,
        due_date=series.next_due,
        status=BillStatus.DUE,
    )
    await store.add(bill)
    logger.info(
        "Bill scheduled",
        bill_id=str(bill.id),
        series_id=str(series.id),
        due_date=series.next_due.isoformat(),
    )
    return bill


async def promote_due_bills(store: BillStore, user_id: UUID, today: date, horizon_days: int) -> int:
    """Move predicted bills due within ``horizon_days`` of ``today`` to due."""
    promoted = 0
    for bill in await store.list_open_until(user_id, today + timedelta(days=horizon_days)):
        if bill.status != BillStatus.PREDICTED:
            continue
        bill.status = BillStatus.DUE
        await store.save(bill)
        promoted += 1

    if promoted:
        logger.info("Predicted bills promoted to due", user_id=str(user_id), count=promoted)
    return promoted
