"""Demo recurring data for local environments.

Safe to run repeatedly: series are upserted by ``(user_id, name, kind)`` and
bills/paychecks carry deterministic ``tx_id`` values that are checked first.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from billwatch.config import settings
from billwatch.logger import get_logger
from billwatch.models import Bill, BillStatus, Cadence, PaycheckHit, RecurringSeries, SeriesKind
from billwatch.repositories.base import RecurringStores
from billwatch.services.cadence import bump_next_due
from billwatch.utils.dates import add_months

logger = get_logger(__name__)

FRIDAY = 4


@dataclass(frozen=True)
class DemoSeries:
    name: str
    merchant: str
    kind: SeriesKind
    cadence: Cadence
    amount: Decimal
    day_of_month: int | None = None


DEMO_BILLS = (
    DemoSeries("RENT", "Landlord", SeriesKind.BILL, Cadence.MONTHLY, Decimal("1800.00"), 1),
    DemoSeries("NETFLIX", "Netflix", SeriesKind.SUBSCRIPTION, Cadence.MONTHLY, Decimal("15.49"), 12),
    DemoSeries("UTILITIES", "Utility Co", SeriesKind.BILL, Cadence.MONTHLY, Decimal("140.00"), 16),
    DemoSeries("SPOTIFY", "Spotify", SeriesKind.SUBSCRIPTION, Cadence.MONTHLY, Decimal("9.99"), 22),
)
DEMO_PAYROLL = DemoSeries("PAYROLL", "Acme Corp", SeriesKind.PAYCHECK, Cadence.BIWEEKLY, Decimal("1850.00"))


@dataclass
class SeedSummary:
    series_created: int = 0
    bills_created: int = 0
    paychecks_created: int = 0


async def _upsert_series(stores: RecurringStores, user_id: UUID, meta: DemoSeries) -> tuple[RecurringSeries, bool]:
    return await stores.series.insert_if_absent(
        RecurringSeries(
            user_id=user_id,
            kind=meta.kind,
            name=meta.name,
            merchant=meta.merchant,
            cadence=meta.cadence,
            day_of_month=meta.day_of_month,
            weekday=FRIDAY if meta.cadence == Cadence.BIWEEKLY else None,
            amount_hint=meta.amount,
            active=True,
        )
    )


def _demo_tx_id(prefix: str, series: RecurringSeries, on: date) -> str:
    return f"demo-{prefix}-{series.id}-{on.isoformat()}"


async def _seed_bills(
    stores: RecurringStores,
    user_id: UUID,
    meta: DemoSeries,
    series: RecurringSeries,
    months: int,
    today: date,
    summary: SeedSummary,
) -> None:
    month_start = today.replace(day=1)
    last_paid: date | None = None

    for offset in range(-months, 2):
        due = add_months(month_start, offset, day=meta.day_of_month)
        if due < today:
            status = BillStatus.PAID
            last_paid = due
        elif offset <= 0:
            status = BillStatus.DUE
        else:
            status = BillStatus.PREDICTED

        if status == BillStatus.PAID:
            tx_id = _demo_tx_id("bill", series, due)
            if await stores.bills.find_by_tx_id(user_id, tx_id) is not None:
                continue
        else:
            tx_id = None
            if await stores.bills.find_open_near(user_id, series.id, due, 0) is not None:
                continue

        await stores.bills.add(
            Bill(
                user_id=user_id,
                series_id=series.id,
                name=meta.name.title(),
                merchant=meta.merchant,
                amount=meta.amount,
                currency=settings.default_currency,
                due_date=due,
                status=status,
                paid_at=due if status == BillStatus.PAID else None,
                tx_id=tx_id,
            )
        )
        summary.bills_created += 1

    if last_paid is not None and (series.last_seen is None or last_paid > series.last_seen):
        series.last_seen = last_paid
        series.next_due = bump_next_due(last_paid, series.cadence, series.day_of_month)
        await stores.series.save(series)


async def _seed_paychecks(
    stores: RecurringStores,
    user_id: UUID,
    series: RecurringSeries,
    months: int,
    today: date,
    summary: SeedSummary,
) -> None:
    pay_day = today - timedelta(days=months * 30)
    while pay_day.weekday() != FRIDAY:
        pay_day += timedelta(days=1)

    last_paid: date | None = None
    while pay_day <= today:
        tx_id = _demo_tx_id("payroll", series, pay_day)
        if await stores.paychecks.find_by_tx_id(user_id, tx_id) is None:
            await stores.paychecks.add(
                PaycheckHit(
                    user_id=user_id,
                    series_id=series.id,
                    amount=DEMO_PAYROLL.amount,
                    date=pay_day,
                    employer_name=DEMO_PAYROLL.merchant,
                    tx_id=tx_id,
                )
            )
            summary.paychecks_created += 1
        last_paid = pay_day
        pay_day += timedelta(days=14)

    if last_paid is not None and (series.last_seen is None or last_paid > series.last_seen):
        series.last_seen = last_paid
        series.next_due = bump_next_due(last_paid, series.cadence)
        await stores.series.save(series)


async def seed_demo_recurring(
    stores: RecurringStores,
    user_id: UUID,
    months: int = 7,
    *,
    today: date | None = None,
) -> SeedSummary:
    """Create demo bills, subscriptions and a biweekly payroll for ``user_id``."""
    today = today or date.today()
    summary = SeedSummary()

    for meta in DEMO_BILLS:
        series, created = await _upsert_series(stores, user_id, meta)
        summary.series_created += int(created)
        await _seed_bills(stores, user_id, meta, series, months, today, summary)

    payroll, created = await _upsert_series(stores, user_id, DEMO_PAYROLL)
    summary.series_created += int(created)
    await _seed_paychecks(stores, user_id, payroll, months, today, summary)

    logger.info(
        "Demo recurring data seeded",
        user_id=str(user_id),
        series_created=summary.series_created,
        bills_created=summary.bills_created,
        paychecks_created=summary.paychecks_created,
    )
    return summary
