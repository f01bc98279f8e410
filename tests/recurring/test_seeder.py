"""Tests for the demo recurring data seeder."""

from datetime import date

from billwatch.models import BillStatus, Cadence, SeriesKind
from billwatch.services.seeder import seed_demo_recurring

TODAY = date(2024, 6, 10)


async def test_seeds_series_bills_and_paychecks(stores, user_id):
    summary = await seed_demo_recurring(stores, user_id, months=3, today=TODAY)

    assert summary.series_created == 5
    assert summary.bills_created > 0
    assert summary.paychecks_created > 0

    series = {s.name: s for s in await stores.series.list_for_user(user_id)}
    assert set(series) == {"RENT", "NETFLIX", "UTILITIES", "SPOTIFY", "PAYROLL"}
    assert series["NETFLIX"].kind == SeriesKind.SUBSCRIPTION
    assert series["RENT"].kind == SeriesKind.BILL
    assert series["PAYROLL"].kind == SeriesKind.PAYCHECK
    assert series["PAYROLL"].cadence == Cadence.BIWEEKLY

    for s in series.values():
        assert s.last_seen is not None
        assert s.next_due > s.last_seen

    statuses = {bill.status for bill in stores.bills.bills.values()}
    assert statuses == {BillStatus.PAID, BillStatus.DUE, BillStatus.PREDICTED}
    assert all(hit.date.weekday() == 4 for hit in stores.paychecks.hits.values())


async def test_current_month_bill_before_due_day_is_due(stores, user_id):
    """GIVEN: Today is the 10th
    WHEN: Seeding
    THEN: Rent (1st) is already paid this month, Netflix (12th) is still due"""
    await seed_demo_recurring(stores, user_id, months=1, today=TODAY)

    by_due = {(b.name, b.due_date): b for b in stores.bills.bills.values()}
    assert by_due[("Rent", date(2024, 6, 1))].status == BillStatus.PAID
    assert by_due[("Netflix", date(2024, 6, 12))].status == BillStatus.DUE
    assert by_due[("Netflix", date(2024, 7, 12))].status == BillStatus.PREDICTED


async def test_second_run_creates_nothing(stores, user_id):
    await seed_demo_recurring(stores, user_id, months=3, today=TODAY)
    bills = len(stores.bills.bills)
    hits = len(stores.paychecks.hits)

    again = await seed_demo_recurring(stores, user_id, months=3, today=TODAY)

    assert again.series_created == 0
    assert again.bills_created == 0
    assert again.paychecks_created == 0
    assert len(stores.bills.bills) == bills
    assert len(stores.paychecks.hits) == hits
