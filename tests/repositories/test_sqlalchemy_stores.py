"""Tests for the session-backed stores on SQLite."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from billwatch.models import Bill, BillStatus, Cadence, LedgerTransaction, RecurringSeries, SeriesKind, TransactionType
from billwatch.repositories import SQLAlchemyStores
from billwatch.repositories.base import ExternalRef, LocalRef, TransactionFilter
from billwatch.services import backfill as backfill_module
from billwatch.services import detection as detection_module
from billwatch.services.backfill import backfill_links
from billwatch.services.detection import detect_recurring_for_user
from billwatch.services.errors import InfrastructureError
from billwatch.services.match_linker import BillMatch, match_bill
from tests.factories import BillFactory, LedgerTransactionFactory, PaycheckHitFactory, spaced_charges

TODAY = date(2024, 6, 1)


def new_series(user_id, name="NETFLIX", kind=SeriesKind.BILL):
    return RecurringSeries(
        user_id=user_id,
        kind=kind,
        name=name,
        merchant=name.title(),
        cadence=Cadence.MONTHLY,
        amount_hint=Decimal("15.49"),
        active=True,
        last_seen=date(2024, 5, 12),
        next_due=date(2024, 6, 12),
    )


async def series_names(stores, user_id):
    return [s.name for s in await stores.series.list_for_user(user_id, active_only=False)]


class TestSeriesStore:
    async def test_insert_if_absent_creates_once(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)

        first, created = await stores.series.insert_if_absent(new_series(user_id))
        second, created_again = await stores.series.insert_if_absent(new_series(user_id))

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert await series_names(stores, user_id) == ["NETFLIX"]

    async def test_same_name_other_kind_is_separate(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)

        await stores.series.insert_if_absent(new_series(user_id))
        _, created = await stores.series.insert_if_absent(new_series(user_id, kind=SeriesKind.PAYCHECK))

        assert created is True
        assert len(await stores.series.list_for_user(user_id, active_only=False)) == 2

    async def test_insert_if_absent_loses_race_to_committed_row(self, sqlite_file_sessions, user_id):
        """GIVEN: Two sessions on separate connections
        WHEN: Both insert the same (user, name, kind), the first one committing first
        THEN: The second sees the committed row and reports nothing created"""
        async with sqlite_file_sessions() as first_session, sqlite_file_sessions() as second_session:
            first_stores = SQLAlchemyStores(first_session)
            second_stores = SQLAlchemyStores(second_session)

            winner, won = await first_stores.series.insert_if_absent(new_series(user_id))
            await first_stores.commit()
            loser, lost = await second_stores.series.insert_if_absent(new_series(user_id))
            await second_stores.commit()

            assert won is True
            assert lost is False
            assert loser.id == winner.id
            assert await series_names(second_stores, user_id) == ["NETFLIX"]

    async def test_get_is_scoped_to_user(self, sqlite_session, user_id, other_user_id):
        stores = SQLAlchemyStores(sqlite_session)
        series, _ = await stores.series.insert_if_absent(new_series(user_id))

        assert (await stores.series.get(user_id, series.id)).name == "NETFLIX"
        assert await stores.series.get(other_user_id, series.id) is None

    async def test_list_for_user_skips_inactive(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        retired, _ = await stores.series.insert_if_absent(new_series(user_id, name="GYM"))
        await stores.series.insert_if_absent(new_series(user_id, name="RENT"))
        retired.active = False
        await stores.series.save(retired)

        active = await stores.series.list_for_user(user_id)
        everything = await stores.series.list_for_user(user_id, active_only=False)

        assert [s.name for s in active] == ["RENT"]
        assert [s.name for s in everything] == ["GYM", "RENT"]


class TestBillStore:
    async def test_find_open_near_picks_closest_open_bill(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        series, _ = await stores.series.insert_if_absent(new_series(user_id))
        around = date(2024, 6, 12)
        near = BillFactory.build(user_id=user_id, series_id=series.id, due_date=around + timedelta(days=2))
        nearer_but_paid = BillFactory.build(
            user_id=user_id, series_id=series.id, due_date=around, status=BillStatus.PAID
        )
        far = BillFactory.build(user_id=user_id, series_id=series.id, due_date=around + timedelta(days=9))
        for bill in (near, nearer_but_paid, far):
            await stores.bills.add(bill)

        found = await stores.bills.find_open_near(user_id, series.id, around, 7)

        assert found.id == near.id

    async def test_list_open_until_orders_by_due_date(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        later = BillFactory.build(user_id=user_id, due_date=TODAY + timedelta(days=9))
        sooner = BillFactory.build(user_id=user_id, due_date=TODAY + timedelta(days=1), status=BillStatus.PREDICTED)
        await stores.bills.add(later)
        await stores.bills.add(sooner)

        bills = await stores.bills.list_open_until(user_id, TODAY + timedelta(days=10))

        assert [b.id for b in bills] == [sooner.id, later.id]

    async def test_find_by_tx_id(self, sqlite_session, user_id, other_user_id):
        stores = SQLAlchemyStores(sqlite_session)
        bill = BillFactory.build(user_id=user_id, tx_id="bank-1")
        await stores.bills.add(bill)

        assert (await stores.bills.find_by_tx_id(user_id, "bank-1")).id == bill.id
        assert await stores.bills.find_by_tx_id(other_user_id, "bank-1") is None


class TestLedgerStore:
    async def test_resolve_local_and_external_refs(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        row = await LedgerTransactionFactory.create_async(sqlite_session, user_id=user_id, external_id="plaid-1")

        assert (await stores.ledger.resolve(user_id, LocalRef(row.id))).id == row.id
        assert (await stores.ledger.resolve(user_id, ExternalRef("plaid-1"))).id == row.id
        assert await stores.ledger.resolve(user_id, LocalRef(uuid4())) is None

    async def test_find_applies_since_and_type(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        for row in spaced_charges(user_id, "Gym", start=TODAY - timedelta(days=60), every_days=30, count=3):
            await stores.ledger.add(row)
        await stores.ledger.add(
            LedgerTransactionFactory.build(user_id=user_id, type=TransactionType.INCOME, date=TODAY)
        )

        records = await stores.ledger.find(
            TransactionFilter(user_id=user_id, since=TODAY - timedelta(days=30), type=TransactionType.EXPENSE)
        )

        assert [r.date for r in records] == [TODAY - timedelta(days=30), TODAY]
        assert all(r.type == "expense" for r in records)

    async def test_id_in_use_spans_users(self, sqlite_session, user_id, other_user_id):
        stores = SQLAlchemyStores(sqlite_session)
        row = await LedgerTransactionFactory.create_async(sqlite_session, user_id=other_user_id)

        assert await stores.ledger.id_in_use(row.id) is True
        assert await stores.ledger.id_in_use(uuid4()) is False
        assert await stores.ledger.get(user_id, row.id) is None

    async def test_find_linked_by_paycheck(self, sqlite_session, user_id):
        stores = SQLAlchemyStores(sqlite_session)
        hit = await PaycheckHitFactory.create_async(sqlite_session, user_id=user_id)
        row = await LedgerTransactionFactory.create_async(
            sqlite_session, user_id=user_id, type=TransactionType.INCOME, matched_paycheck_id=hit.id
        )

        assert (await stores.ledger.find_linked(user_id, paycheck_id=hit.id)).id == row.id
        assert await stores.ledger.find_linked(user_id) is None


async def test_detection_end_to_end_is_idempotent(sqlite_session, user_id):
    """GIVEN: Four monthly NETFLIX rows in the database
    WHEN: Running detection twice through the SQL stores
    THEN: Exactly one series and one bill exist"""
    stores = SQLAlchemyStores(sqlite_session)
    for row in spaced_charges(user_id, "Netflix", start=TODAY - timedelta(days=100), every_days=30, count=4):
        await stores.ledger.add(row)

    first = await detect_recurring_for_user(stores, user_id, today=TODAY)
    second = await detect_recurring_for_user(stores, user_id, today=TODAY)
    await stores.commit()

    assert first.results[0].series_id == second.results[0].series_id
    assert await series_names(stores, user_id) == ["NETFLIX"]
    bills = await stores.bills.list_for_series(user_id, first.results[0].series_id)
    assert len(bills) == 1


async def test_match_bill_round_trip(sqlite_session, user_id):
    stores = SQLAlchemyStores(sqlite_session)

    first = await match_bill(stores, user_id, BillMatch(tx_id="bank-42", amount="60"), today=TODAY)
    second = await match_bill(stores, user_id, BillMatch(tx_id="bank-42", amount="60"), today=TODAY)

    assert first.bill.id == second.bill.id
    row = await stores.ledger.get(user_id, first.transaction_id)
    assert row.external_id == "bank-42"
    assert row.matched_bill_id == first.bill.id


async def test_match_bill_with_other_users_ledger_id(sqlite_session, user_id, other_user_id):
    """GIVEN: A tx_id that is another user's ledger row id
    WHEN: Matching a bill by it through the SQL stores, twice
    THEN: The insert gets a fresh id instead of colliding on the primary key"""
    stores = SQLAlchemyStores(sqlite_session)
    foreign = await LedgerTransactionFactory.create_async(sqlite_session, user_id=other_user_id)

    first = await match_bill(stores, user_id, BillMatch(tx_id=str(foreign.id), amount="20"), today=TODAY)
    second = await match_bill(stores, user_id, BillMatch(tx_id=str(foreign.id), amount="20"), today=TODAY)
    await stores.commit()

    assert first.transaction_id != foreign.id
    assert second.transaction_id == first.transaction_id
    assert second.bill.id == first.bill.id
    row = await stores.ledger.get(user_id, first.transaction_id)
    assert row.external_id == str(foreign.id)
    assert (await stores.ledger.get(other_user_id, foreign.id)).matched_bill_id is None


async def test_failed_cluster_rolls_back_alone(sqlite_session, user_id, monkeypatch):
    """GIVEN: Two recurring merchants, one whose bill insert violates a constraint
    WHEN: Running detection through the SQL stores
    THEN: The failing cluster leaves nothing behind and the other one still lands"""
    stores = SQLAlchemyStores(sqlite_session)
    for row in spaced_charges(user_id, "AAA Bad", start=TODAY - timedelta(days=101), every_days=30, count=4):
        await stores.ledger.add(row)
    for row in spaced_charges(user_id, "ZZZ Good", start=TODAY - timedelta(days=100), every_days=30, count=4):
        await stores.ledger.add(row)

    original = detection_module.schedule_bill

    async def schedule_with_broken_row(store, series):
        if series.name == "AAA BAD":
            await store.add(Bill(user_id=series.user_id, series_id=series.id, name=None, currency="USD"))
        return await original(store, series)

    monkeypatch.setattr(detection_module, "schedule_bill", schedule_with_broken_row)

    result = await detect_recurring_for_user(stores, user_id, today=TODAY)
    await stores.commit()

    assert [item.key for item in result.results] == ["ZZZ GOOD|expense"]
    assert await series_names(stores, user_id) == ["ZZZ GOOD"]
    bills = await stores.bills.list_for_series(user_id, result.results[0].series_id)
    assert len(bills) == 1


async def test_failed_backfill_item_rolls_back_alone(sqlite_session, user_id, monkeypatch):
    stores = SQLAlchemyStores(sqlite_session)
    broken = await BillFactory.create_async(
        sqlite_session, user_id=user_id, name="Broken", status=BillStatus.PAID, paid_at=TODAY - timedelta(days=9)
    )
    good = await BillFactory.create_async(
        sqlite_session, user_id=user_id, name="Rent", status=BillStatus.PAID, paid_at=TODAY - timedelta(days=3)
    )

    broken_id, good_id = broken.id, good.id
    original = backfill_module._backfill_bill

    async def backfill_with_broken_row(store, uid, bill, account_id, today, summary):
        if bill.name == "Broken":
            row = LedgerTransaction(user_id=uid, type=TransactionType.EXPENSE, amount=None, date=today)
            await store.ledger.add(row)
        await original(store, uid, bill, account_id, today, summary)

    monkeypatch.setattr(backfill_module, "_backfill_bill", backfill_with_broken_row)

    result = await backfill_links(stores, user_id, today=TODAY)
    await stores.commit()

    assert result.summary.bills_created == 1
    assert (await stores.ledger.find_linked(user_id, bill_id=good_id)) is not None
    assert await stores.ledger.find_linked(user_id, bill_id=broken_id) is None


async def test_connection_errors_become_infrastructure_errors(sqlite_session, user_id, monkeypatch):
    stores = SQLAlchemyStores(sqlite_session)

    async def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(sqlite_session, "execute", broken_execute)

    with pytest.raises(InfrastructureError):
        await stores.bills.find_by_tx_id(user_id, "bank-1")
