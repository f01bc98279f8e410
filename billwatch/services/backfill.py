"""Repair ledger linkage for paid bills and paycheck hits."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from billwatch.logger import get_logger, log_exception
from billwatch.models import (
    Bill,
    LedgerSource,
    LedgerTransaction,
    PaycheckHit,
    TransactionType,
)
from billwatch.repositories.base import ExternalRef, RecurringStores, parse_tx_ref
from billwatch.services.errors import InfrastructureError, ValidationError
from billwatch.services.match_linker import BILL_CATEGORY, INCOME_CATEGORY, LINK_CONFIDENCE

logger = get_logger(__name__)


@dataclass
class BackfillSummary:
    bills_created: int = 0
    bills_linked: int = 0
    pays_created: int = 0
    pays_linked: int = 0


@dataclass
class BackfillResult:
    since: date
    summary: BackfillSummary = field(default_factory=BackfillSummary)


async def _find_ledger_row(
    stores: RecurringStores,
    user_id: UUID,
    tx_id: str | None,
    *,
    bill_id: UUID | None = None,
    paycheck_id: UUID | None = None,
) -> LedgerTransaction | None:
    row = await stores.ledger.find_linked(user_id, bill_id=bill_id, paycheck_id=paycheck_id)
    if row is not None or not tx_id:
        return row
    return await stores.ledger.resolve(user_id, parse_tx_ref(tx_id))


def _external_id(tx_id: str | None) -> str | None:
    if not tx_id:
        return None
    ref = parse_tx_ref(tx_id)
    return ref.value if isinstance(ref, ExternalRef) else None


def _relink(
    row: LedgerTransaction,
    series_id: UUID | None,
    *,
    bill_id: UUID | None = None,
    paycheck_id: UUID | None = None,
) -> bool:
    """Patch stale linkage columns on ``row``; returns whether anything changed."""
    stale = row.matched_recurring_id != series_id or row.match_confidence is None
    if bill_id is not None:
        stale = stale or row.matched_bill_id != bill_id
    if paycheck_id is not None:
        stale = stale or row.matched_paycheck_id != paycheck_id
    if not stale:
        return False

    if bill_id is not None:
        row.matched_bill_id = bill_id
    if paycheck_id is not None:
        row.matched_paycheck_id = paycheck_id
    row.matched_recurring_id = series_id
    row.match_confidence = LINK_CONFIDENCE
    return True


async def _backfill_bill(
    stores: RecurringStores,
    user_id: UUID,
    bill: Bill,
    account_id: str | None,
    today: date,
    summary: BackfillSummary,
) -> None:
    row = await _find_ledger_row(stores, user_id, bill.tx_id, bill_id=bill.id)
    if row is not None:
        if _relink(row, bill.series_id, bill_id=bill.id):
            await stores.ledger.save(row)
            summary.bills_linked += 1
        return

    await stores.ledger.add(
        LedgerTransaction(
            user_id=user_id,
            type=TransactionType.EXPENSE,
            category=BILL_CATEGORY,
            amount=max(bill.amount or Decimal("0"), Decimal("0")),
            date=bill.paid_at or bill.due_date or today,
            description=bill.name or "Bill",
            merchant=bill.merchant,
            source=LedgerSource.MANUAL,
            account_id=account_id,
            account_name=bill.merchant or bill.name,
            external_id=_external_id(bill.tx_id),
            matched_bill_id=bill.id,
            matched_recurring_id=bill.series_id,
            match_confidence=LINK_CONFIDENCE,
        )
    )
    summary.bills_created += 1


async def _backfill_paycheck(
    stores: RecurringStores,
    user_id: UUID,
    hit: PaycheckHit,
    account_id: str | None,
    summary: BackfillSummary,
) -> None:
    row = await _find_ledger_row(stores, user_id, hit.tx_id, paycheck_id=hit.id)
    if row is not None:
        if _relink(row, hit.series_id, paycheck_id=hit.id):
            await stores.ledger.save(row)
            summary.pays_linked += 1
        return

    await stores.ledger.add(
        LedgerTransaction(
            user_id=user_id,
            type=TransactionType.INCOME,
            category=INCOME_CATEGORY,
            amount=max(hit.amount or Decimal("0"), Decimal("0")),
            date=hit.date,
            description=hit.employer_name or "Paycheck",
            merchant=hit.employer_name,
            source=LedgerSource.MANUAL,
            account_id=account_id or hit.account_id,
            account_name=hit.employer_name,
            external_id=_external_id(hit.tx_id),
            matched_paycheck_id=hit.id,
            matched_recurring_id=hit.series_id,
            match_confidence=LINK_CONFIDENCE,
        )
    )
    summary.pays_created += 1


async def backfill_links(
    stores: RecurringStores,
    user_id: UUID,
    days: int = 365,
    account_id: str | None = None,
    *,
    today: date | None = None,
) -> BackfillResult:
    """Make every paid bill and paycheck hit since ``today - days`` reference a ledger row.

    Rows that already point at the record are left alone, so running this
    twice on unchanged data reports zero work the second time.
    """
    if days < 1:
        raise ValidationError("days must be at least 1")

    today = today or date.today()
    result = BackfillResult(since=today - timedelta(days=days))
    summary = result.summary

    for bill in await stores.bills.list_paid_since(user_id, result.since):
        bill_id = bill.id
        try:
            async with stores.savepoint():
                await _backfill_bill(stores, user_id, bill, account_id, today, summary)
        except InfrastructureError:
            raise
        except Exception as exc:
            log_exception(logger, exc, "Skipped bill during backfill", bill_id=str(bill_id))

    for hit in await stores.paychecks.list_since(user_id, result.since):
        hit_id = hit.id
        try:
            async with stores.savepoint():
                await _backfill_paycheck(stores, user_id, hit, account_id, summary)
        except InfrastructureError:
            raise
        except Exception as exc:
            log_exception(logger, exc, "Skipped paycheck during backfill", hit_id=str(hit_id))

    logger.info(
        "Backfill completed",
        user_id=str(user_id),
        since=result.since.isoformat(),
        bills_created=summary.bills_created,
        bills_linked=summary.bills_linked,
        pays_created=summary.pays_created,
        pays_linked=summary.pays_linked,
    )
    return result
